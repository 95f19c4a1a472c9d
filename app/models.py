from typing import List, Optional

from pydantic import BaseModel, Field


class DecisionRequest(BaseModel):
    orderId: str
    decision: str
    reason: Optional[str] = None


class DecisionResponse(BaseModel):
    message: str
    orderId: str
    status: str
    bannedIdentity: bool
    bannedOrigin: bool


class OrderAccepted(BaseModel):
    message: str
    orderId: str
    status: str


class VerdictOut(BaseModel):
    isAuthentic: bool
    confidence: float
    reason: str


class ClaimOut(BaseModel):
    id: str
    status: str
    userEmail: Optional[str] = None
    expectedAmount: Optional[str] = None
    contactInfo: str
    imageUrl: Optional[str] = None
    originHash: str
    aiDecision: VerdictOut
    timestamp: str
    decidedAt: Optional[str] = None
    decisionReason: Optional[str] = None


class Cursor(BaseModel):
    timestamp: str
    id: str


class ClaimPage(BaseModel):
    requests: List[ClaimOut] = Field(default_factory=list)
    nextCursor: Optional[Cursor] = None
