"""
Base utilities shared by the authentication API components.

This module provides:
- Logging setup
- Structured event, error and audit logging
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # uvicorn's access log duplicates our own request log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class BaseService:
    """
    Structured logger for a service.

    Every record is emitted as a single JSON document so the log sink can
    index the fields. Security-relevant rejections go through log_security at
    WARNING level; successful authentications through log_auth at INFO.
    """

    def __init__(self, service_name: str = "jwt-auth-api"):
        self.service_name = service_name
        self.logger = logging.getLogger(f"authapi.{service_name}")

    def _emit(self, level: int, kind: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        record = {
            "timestamp": _now(),
            "service": self.service_name,
            **payload,
        }
        self.logger.log(level, f"{kind}: {json.dumps(record, default=str)}")
        return record

    def log_event(self, event_name: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Log a lifecycle event."""
        return self._emit(logging.INFO, "EVENT", {"event": event_name, "data": data or {}})

    def log_error(self, error: Exception, context: Optional[Any] = None) -> Dict[str, Any]:
        """Log an error with optional context."""
        return self._emit(logging.ERROR, "ERROR", {
            "error": str(error),
            "error_type": error.__class__.__name__,
            "context": context or "unknown",
        })

    def log_auth(
        self,
        username: Optional[str],
        action: str,
        ip: Optional[str],
        success: bool = True,
    ) -> Dict[str, Any]:
        """
        Log an authentication event.

        Args:
            username: Username involved, or None when it is unknown
            action: What was attempted (login_success, profile_access, ...)
            ip: Client address
            success: Whether the attempt succeeded
        """
        return self._emit(logging.INFO if success else logging.WARNING, "AUTH", {
            "username": username or "unknown",
            "action": action,
            "ip": ip,
            "success": success,
        })

    def log_security(self, event: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Log a security-relevant rejection."""
        return self._emit(logging.WARNING, "SECURITY", {"event": event, "details": details or {}})

    def log_api(
        self,
        method: str,
        url: str,
        status_code: int,
        response_time_ms: float,
        ip: Optional[str],
    ) -> Dict[str, Any]:
        """Log a completed API request."""
        level = logging.WARNING if status_code >= 400 else logging.INFO
        return self._emit(level, "API", {
            "method": method,
            "url": url,
            "status_code": status_code,
            "response_time": f"{response_time_ms:.1f}ms",
            "ip": ip,
        })
