"""
Logging configuration for the FraudGate service.

Provides structured JSON logging for audit trails and debugging.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import List, Optional

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs in a consistent JSON format suitable for
    log aggregation systems like ELK, Splunk, or CloudWatch.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add request ID if available
        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Specialized logger for audit events.

    Records access denials, submission outcomes and operator decisions.
    Raw origins are never passed in; callers log the origin hash.
    """

    def __init__(self, name: str = "fraudgate.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def access_denied(self, origin_hash: str, reason: str, path: str) -> None:
        """Log a request blocked by the access gate."""
        self._log(
            logging.WARNING,
            "ACCESS_DENIED",
            origin_hash=origin_hash,
            reason=reason,
            path=path,
            message=f"Access denied ({reason}) on {path}"
        )

    def access_degraded(self, origin_hash: str, warnings: List[str], path: str) -> None:
        """Log a request allowed because a ban check could not run."""
        self._log(
            logging.WARNING,
            "ACCESS_DEGRADED",
            origin_hash=origin_hash,
            warnings=warnings,
            path=path,
            message=f"Allowed without complete ban checks on {path}"
        )

    def claim_accepted(self, claim_id: str, origin_hash: str) -> None:
        self._log(
            logging.INFO,
            "CLAIM_ACCEPTED",
            claim_id=claim_id,
            origin_hash=origin_hash,
            message=f"Claim {claim_id} pending review"
        )

    def claim_rejected(self, origin_hash: str, message: str) -> None:
        self._log(
            logging.WARNING,
            "CLAIM_REJECTED",
            origin_hash=origin_hash,
            message=message
        )

    def submission_failed(self, origin_hash: str, stage: str) -> None:
        """Log a submission aborted with a retryable error."""
        self._log(
            logging.ERROR,
            "SUBMISSION_FAILED",
            origin_hash=origin_hash,
            stage=stage,
            message=f"Submission aborted at {stage}"
        )

    def admin_decision(
        self,
        claim_id: str,
        decision: str,
        identity_banned: bool,
        failures: Optional[list] = None
    ) -> None:
        """Log an operator decision on a claim."""
        level = logging.INFO if not failures else logging.ERROR
        self._log(
            level,
            "ADMIN_DECISION",
            claim_id=claim_id,
            decision=decision,
            identity_banned=identity_banned,
            failures=failures or [],
            message=f"Decision {decision} recorded for claim {claim_id}"
        )

    def admin_auth_failed(self, path: str) -> None:
        self._log(
            logging.WARNING,
            "ADMIN_AUTH_FAILED",
            path=path,
            message=f"Admin access denied on {path}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Create formatter
    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler (if specified)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


# Global audit logger instance
audit_log = AuditLogger()
