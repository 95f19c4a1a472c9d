import logging
import sqlite3
import threading
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from fraudgate import (
    ClaimNotFound,
    ClaimSubmission,
    DecisionConflict,
    Decision,
    OutcomeKind,
    RetrySubmission,
    StoreError,
    __version__,
    origin_hash,
)

from . import config
from .logging_config import audit_log, configure_logging, set_request_id
from .models import ClaimOut, ClaimPage, Cursor, DecisionRequest, DecisionResponse, OrderAccepted, VerdictOut
from .security import (
    ValidationError,
    client_origin,
    is_admin,
    validate_claim_id,
    validate_contact,
    validate_decision,
    validate_email,
    validate_expected_amount,
    validate_image_upload,
    validate_reason,
)
from .services import Services, build_services

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
DEFAULT_BAN_REASON = "Manual Admin Ban"
DEFAULT_APPROVAL_REASON = "Manual Admin Approval"


def request_origin(request: Request, trust_proxy: bool) -> Optional[str]:
    peer = request.client.host if request.client else None
    return client_origin(peer, request.headers.get("x-forwarded-for"), trust_proxy)


def claim_out(claim) -> ClaimOut:
    verdict = claim.verdict
    record = claim.to_record()
    return ClaimOut(
        id=claim.id,
        status=claim.status.value,
        userEmail=claim.identity,
        expectedAmount=str(claim.expected_amount) if claim.expected_amount is not None else None,
        contactInfo=claim.contact_info,
        imageUrl=claim.evidence_ref,
        originHash=claim.origin_hash,
        aiDecision=VerdictOut(isAuthentic=verdict.is_authentic, confidence=verdict.confidence, reason=verdict.reason),
        timestamp=record["created_at"],
        decidedAt=record["decided_at"],
        decisionReason=claim.decision_reason,
    )


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Build the FraudGate HTTP app.

    Without explicit services, they are built from the environment on
    first use.
    """
    app = FastAPI(title="FraudGate", version=__version__)
    state = {"services": services}
    lock = threading.Lock()

    if services is None:
        configure_logging(config.effective_log_level(), config.LOG_JSON, config.LOG_FILE)

    def get_services() -> Services:
        if state["services"] is None:
            with lock:
                if state["services"] is None:
                    state["services"] = build_services()
        return state["services"]

    app.state.get_services = get_services

    # ============================================================
    # Middleware (last registered runs first)
    # ============================================================

    @app.middleware("http")
    async def access_gate(request: Request, call_next):
        svc = await run_in_threadpool(get_services)
        origin = request_origin(request, svc.trust_proxy)
        path = request.url.path
        outcome = await run_in_threadpool(
            svc.gate.check,
            origin,
            request.headers.get("x-user-email"),
            path.startswith(config.ADMIN_ROUTE_PREFIX),
        )
        if outcome.kind == OutcomeKind.DENY:
            audit_log.access_denied(origin_hash(origin, config.ORIGIN_HASH_SALT), outcome.reason.value, path)
            return JSONResponse(status_code=403, content=outcome.to_response())
        if outcome.kind == OutcomeKind.DEGRADED_ALLOW:
            audit_log.access_degraded(origin_hash(origin, config.ORIGIN_HASH_SALT), outcome.warnings, path)
        return await call_next(request)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = set_request_id(request.headers.get("x-request-id") or None)
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            response = JSONResponse(
                status_code=500,
                content={"error": "Internal server error", "request_id": request_id},
            )
        response.headers["X-Request-ID"] = request_id
        return response

    # ============================================================
    # Error handlers
    # ============================================================

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"error": exc.message, "field": exc.field})

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(request: Request, exc: RequestValidationError):
        fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
        return JSONResponse(status_code=400, content={"error": "Invalid request", "fields": fields})

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    def require_admin(request: Request) -> None:
        if not is_admin(request.headers.get("x-admin-secret"), get_services().admin_secret):
            audit_log.admin_auth_failed(request.url.path)
            raise HTTPException(403, "Admin access denied")

    # ============================================================
    # Health
    # ============================================================

    @app.get("/")
    def root():
        return {"message": "FraudGate API is running", "version": __version__}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/ready")
    def ready():
        svc = get_services()
        db_stats = {}
        try:
            db_ok = svc.db.ping()
            db_stats = svc.db.get_db_stats()
        except sqlite3.Error as e:
            logger.error("Readiness check failed: %s", e)
            db_ok = False
        body = {
            "status": "ready" if db_ok else "unavailable",
            "database": db_ok,
            "counts": db_stats,
            "cache": svc.cache.stats(),
        }
        return JSONResponse(status_code=200 if db_ok else 503, content=body)

    # ============================================================
    # Orders
    # ============================================================

    @app.post("/api/orders", response_model=OrderAccepted)
    def submit_order(
        request: Request,
        screenshot: Optional[UploadFile] = File(None),
        userEmail: Optional[str] = Form(None),
        expectedAmount: Optional[str] = Form(None),
        contactInfo: Optional[str] = Form(None),
    ):
        svc = get_services()
        if screenshot is None:
            raise ValidationError("screenshot", "No screenshot uploaded")
        data = screenshot.file.read(svc.max_upload_bytes + 1)
        if len(data) > svc.max_upload_bytes:
            return JSONResponse(
                status_code=413,
                content={"error": f"Screenshot exceeds {svc.max_upload_bytes} bytes"},
            )
        mime_type = validate_image_upload(screenshot.content_type, len(data), svc.max_upload_bytes)

        origin = request_origin(request, svc.trust_proxy)
        hashed = origin_hash(origin, config.ORIGIN_HASH_SALT)
        submission = ClaimSubmission(
            origin=origin,
            artifact=data,
            mime_type=mime_type,
            identity=validate_email(userEmail),
            expected_amount=validate_expected_amount(expectedAmount),
            contact_info=validate_contact(contactInfo),
        )

        try:
            result = svc.pipeline.submit(submission)
        except RetrySubmission as e:
            audit_log.submission_failed(hashed, e.stage)
            return JSONResponse(status_code=503, content={"error": e.message, "retryable": True})

        if not result.accepted():
            audit_log.claim_rejected(hashed, result.message)
            body = {"error": "Access denied", "reason": result.message}
            if result.redirect:
                body["redirect"] = result.redirect
            return JSONResponse(status_code=403, content=body)

        audit_log.claim_accepted(result.claim_id, hashed)
        return OrderAccepted(message=result.message, orderId=result.claim_id, status="PENDING_REVIEW")

    # ============================================================
    # Admin
    # ============================================================

    @app.get("/api/admin/requests", response_model=ClaimPage, dependencies=[Depends(require_admin)])
    def list_requests(
        limit: int = DEFAULT_PAGE_SIZE,
        lastTimestamp: Optional[str] = None,
        lastId: Optional[str] = None,
    ):
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        cursor = None
        if lastTimestamp or lastId:
            if not (lastTimestamp and lastId):
                raise ValidationError("cursor", "lastTimestamp and lastId must be given together")
            cursor = (lastTimestamp, lastId)
        try:
            claims, next_cursor = get_services().claim_store.list_recent(limit=limit, cursor=cursor)
        except StoreError as e:
            logger.error("Claim listing failed: %s", e)
            return JSONResponse(status_code=503, content={"error": "Failed to fetch requests", "retryable": True})
        return ClaimPage(
            requests=[claim_out(c) for c in claims],
            nextCursor=Cursor(timestamp=next_cursor[0], id=next_cursor[1]) if next_cursor else None,
        )

    @app.post("/api/admin/decision", response_model=DecisionResponse, dependencies=[Depends(require_admin)])
    def decide(req: DecisionRequest):
        claim_id = validate_claim_id(req.orderId)
        decision = validate_decision(req.decision)
        default_reason = DEFAULT_BAN_REASON if decision == Decision.FRAUD else DEFAULT_APPROVAL_REASON
        reason = validate_reason(req.reason, default_reason)

        try:
            report = get_services().escalation.decide(claim_id, decision, reason)
        except ClaimNotFound:
            return JSONResponse(status_code=404, content={"error": "Order not found"})
        except DecisionConflict as e:
            return JSONResponse(status_code=409, content={"error": str(e), "status": e.status.value})
        except StoreError as e:
            logger.error("Decision on %s not recorded: %s", claim_id, e)
            return JSONResponse(status_code=503, content={"error": "Failed to record decision", "retryable": True})

        audit_log.admin_decision(claim_id, decision.value, report.identity_banned, report.failures)
        label = "fraud" if decision == Decision.FRAUD else "approved"
        return DecisionResponse(
            message=f"Order marked as {label}",
            orderId=claim_id,
            status=report.status.value,
            bannedIdentity=report.identity_banned,
            bannedOrigin=report.origin_banned,
        )

    @app.on_event("shutdown")
    def _shutdown():
        if state["services"] is not None:
            state["services"].pipeline.shutdown()

    return app


app = create_app()
