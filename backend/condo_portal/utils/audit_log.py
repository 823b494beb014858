from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "reservation.created",
    "reservation.cancelled",
    "tenant.registered",
    "tenant.deleted",
    "tenant.password_reset",
    "bill.uploaded",
    "bill.deleted",
    "account.password_changed",
]
AuditInitiator = Literal["tenant", "admin"]


def _build_audit_logger() -> logging.Logger:
    """One JSON document per line on stderr, kept out of the application log."""
    audit = logging.getLogger("audit")
    audit.setLevel(logging.INFO)
    audit.propagate = False
    if not audit.handlers:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter("%(message)s"))
        audit.addHandler(stream)
    return audit


_audit_logger = _build_audit_logger()


def _to_jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, uuid.UUID):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    actor_id: Optional[uuid.UUID],
    subject_id: Any,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit structured JSON audit log. Raises RuntimeError if logging fails."""
    fields: dict[str, Any] = {
        "action": action,
        "initiator": initiator,
        "actor_id": actor_id,
        "subject_id": subject_id,
        "message": message,
        **(extra or {}),
    }
    record = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "request_id": get_request_id(),
    }
    record.update({key: _to_jsonable(value) for key, value in fields.items()})

    try:
        _audit_logger.info(json.dumps({k: v for k, v in record.items() if v is not None}, ensure_ascii=True))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc
