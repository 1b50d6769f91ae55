"""
Audit log for grant decisions.
Created: 2026-10-18

Append-only JSONL record of every code and token the server hands out or
refuses. Writing the audit log must never break a request.
"""

import json
import logging
import uuid
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger("audit")


class AuditSeverity(str, Enum):
    INFO = "info"  # Normal grant
    WARNING = "warning"  # Refused grant (bad secret, replayed code, ...)
    CRITICAL = "critical"  # Server-side failure while granting


@dataclass
class AuditEvent:
    """A single audit log entry."""

    id: str
    timestamp: str
    severity: AuditSeverity
    action: str  # e.g. "token_issued", "token_denied"
    client_id: str
    user_id: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        severity: AuditSeverity,
        action: str,
        client_id: str,
        user_id: str | None = None,
        **context: Any,
    ) -> "AuditEvent":
        return cls(
            id=str(uuid.uuid4()),
            timestamp=datetime.now(tz=UTC).isoformat(),
            severity=severity,
            action=action,
            client_id=client_id,
            user_id=user_id,
            context=context,
        )


class AuditLogger:
    """
    Append-only audit logger.
    Writes to ~/.pocketauth/audit.jsonl unless given another path.
    """

    def __init__(self, log_path: Path | None = None, enabled: bool = True):
        if log_path is None:
            from pocketauth.config import get_config_dir

            log_path = get_config_dir() / "audit.jsonl"
        self.log_path = log_path
        self.enabled = enabled
        self._callbacks: list[Callable[[dict], None]] = []

    def on_log(self, callback: Callable[[dict], None]) -> None:
        """Register a callback to be called after each audit log write."""
        self._callbacks.append(callback)

    def log(self, event: AuditEvent) -> None:
        if not self.enabled:
            return
        try:
            event_dict = asdict(event)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(event_dict) + "\n")
        except OSError as e:
            logger.critical("FAILED TO WRITE AUDIT LOG: %s | Event: %s", e, event)
            return
        for cb in self._callbacks:
            try:
                cb(event_dict)
            except Exception:
                logger.debug("Audit callback failed", exc_info=True)

    def log_grant(
        self,
        action: str,
        client_id: str,
        user_id: str | None = None,
        severity: AuditSeverity = AuditSeverity.INFO,
        **context: Any,
    ) -> str:
        event = AuditEvent.create(
            severity=severity,
            action=action,
            client_id=client_id,
            user_id=user_id,
            **context,
        )
        self.log(event)
        return event.id


_audit_logger: AuditLogger | None = None


def get_audit_logger() -> AuditLogger:
    global _audit_logger
    if _audit_logger is None:
        from pocketauth.config import get_settings

        _audit_logger = AuditLogger(enabled=get_settings().audit_enabled)
    return _audit_logger


def reset_audit_logger() -> None:
    global _audit_logger
    _audit_logger = None
