"""
Deterministic hashing utilities.

Approval records carry a SHA-256 over their immutable fields so that any
post-creation edit, including one made with raw SQL, is detectable when
the audit trail is assembled.
"""

import hashlib
import json
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Decimal):
        # Trailing zeros differ between backends; normalize
        return str(obj.normalize())
    if isinstance(obj, datetime):
        if obj.tzinfo is None:
            obj = obj.replace(tzinfo=timezone.utc)
        return obj.astimezone(timezone.utc).isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Keys are sorted, no whitespace, special types rendered consistently.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """Compute hex-encoded SHA-256 of a payload's canonical JSON."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_approval(
    approval_id: UUID,
    expense_id: UUID,
    approver_id: UUID,
    verdict: str,
    comment: str | None,
    created_at: datetime,
) -> str:
    """
    Compute the tamper-evidence hash of an approval record.

    Args:
        approval_id: Approval record ID.
        expense_id: Expense the decision was made on.
        approver_id: User who decided.
        verdict: Verdict value ("approved" / "rejected").
        comment: Optional free-text comment.
        created_at: Decision timestamp.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    return hash_payload({
        "approval_id": approval_id,
        "expense_id": expense_id,
        "approver_id": approver_id,
        "verdict": verdict,
        "comment": comment,
        "created_at": created_at,
    })
