"""
Service wiring.

Builds the fraudgate core objects from configuration. The HTTP app and the
CLI share one construction path.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fraudgate import (
    AccessCache,
    AccessGate,
    ArtifactStore,
    BanEscalation,
    BanStore,
    ClaimStore,
    EvidenceClassifier,
    Notifier,
    VerificationPipeline,
)

from . import config
from .backends import SqliteBanStore, SqliteClaimStore, get_artifact_store
from .classifier import GeminiClassifier, UnconfiguredClassifier
from .db import SqliteDatabase
from .notify import get_notifier

logger = logging.getLogger(__name__)


@dataclass
class Services:
    db: SqliteDatabase
    ban_store: BanStore
    claim_store: ClaimStore
    cache: AccessCache
    gate: AccessGate
    escalation: BanEscalation
    pipeline: VerificationPipeline
    admin_secret: str = ""
    trust_proxy: bool = False
    max_upload_bytes: int = config.MAX_UPLOAD_BYTES

    def close(self) -> None:
        self.pipeline.shutdown()
        self.db.close()


def get_classifier() -> EvidenceClassifier:
    if not config.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY not set; all claims go to manual review")
        return UnconfiguredClassifier()
    return GeminiClassifier(
        api_key=config.GEMINI_API_KEY,
        model_name=config.GEMINI_MODEL,
        payment_addresses=config.load_payment_addresses(),
        request_timeout=config.CLASSIFIER_TIMEOUT_SECONDS,
    )


def assemble(
    db: SqliteDatabase,
    artifact_store: ArtifactStore,
    notifier: Notifier,
    classifier: EvidenceClassifier,
    admin_secret: str = "",
    trust_proxy: bool = False,
    cache: Optional[AccessCache] = None,
    classifier_timeout: float = config.CLASSIFIER_TIMEOUT_SECONDS,
    max_upload_bytes: int = config.MAX_UPLOAD_BYTES
) -> Services:
    """Wire the core around a database and the given integrations."""
    db.init_db()
    ban_store = SqliteBanStore(db)
    claim_store = SqliteClaimStore(db)
    if cache is None:
        cache = AccessCache(
            max_entries=config.ACCESS_CACHE_MAX_ENTRIES,
            ttl_seconds=config.ACCESS_CACHE_TTL_SECONDS,
        )
    gate = AccessGate(ban_store, cache, redirect_url=config.BLACKLIST_REDIRECT)
    escalation = BanEscalation(ban_store, claim_store, cache)
    pipeline = VerificationPipeline(
        ban_store,
        claim_store,
        artifact_store,
        notifier,
        classifier,
        escalation=escalation,
        redirect_url=config.BLACKLIST_REDIRECT,
        fraud_threshold=config.FRAUD_CONFIDENCE_THRESHOLD,
        classifier_timeout=classifier_timeout,
        classifier_workers=config.CLASSIFIER_WORKERS,
        origin_hash_salt=config.ORIGIN_HASH_SALT,
    )
    return Services(
        db=db,
        ban_store=ban_store,
        claim_store=claim_store,
        cache=cache,
        gate=gate,
        escalation=escalation,
        pipeline=pipeline,
        admin_secret=admin_secret,
        trust_proxy=trust_proxy,
        max_upload_bytes=max_upload_bytes,
    )


def build_services() -> Services:
    """Build services from environment configuration."""
    config.require_production_secrets()
    services = assemble(
        db=SqliteDatabase(config.DB_PATH),
        artifact_store=get_artifact_store(),
        notifier=get_notifier(),
        classifier=get_classifier(),
        admin_secret=config.ADMIN_SECRET,
        trust_proxy=config.TRUST_PROXY,
    )
    logger.info(
        "Services initialized",
        extra={"extra_fields": {"env": config.ENV, "integrations": config.validate_config()}}
    )
    return services
