"""Utility functions for the application."""

from __future__ import annotations

import datetime
import re
import secrets
from typing import TYPE_CHECKING, Any

from firebase_admin import firestore

from .core.constants import (
    ENTITY_ID_ALPHABET,
    ENTITY_ID_LENGTH,
    INVITE_CODE_ALPHABET,
    INVITE_CODE_LENGTH,
    INVITE_CODE_MAX_ATTEMPTS,
)
from .errors import ConflictError, ValidationError

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client


INVITE_CODE_PATTERN = re.compile(
    r"^(1V1|TRN)-[" + INVITE_CODE_ALPHABET + r"]{" + str(INVITE_CODE_LENGTH) + r"}$"
)


def utcnow() -> datetime.datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def deadline_from_now(hours: float, now: datetime.datetime | None = None) -> datetime.datetime:
    """Return the point in time `hours` after `now`."""
    return (now or utcnow()) + datetime.timedelta(hours=hours)


def is_overdue(data: dict[str, Any], now: datetime.datetime) -> bool:
    """Whether the document's deadline has passed at `now`."""
    deadline = data.get("deadline")
    return deadline is not None and deadline <= now


def generate_entity_id() -> str:
    """Generate an opaque document ID shaped like a Firestore auto-ID."""
    return "".join(secrets.choice(ENTITY_ID_ALPHABET) for _ in range(ENTITY_ID_LENGTH))


def generate_invite_code(prefix: str) -> str:
    """Generate a short shareable code, e.g. ``1V1-8K4M``.

    The alphabet leaves out 0/O and 1/I so codes survive being read aloud.
    """
    body = "".join(
        secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH)
    )
    return f"{prefix}{body}"


def normalize_invite_code(code: str | None, prefix: str) -> str:
    """Upper-case and validate a user supplied invite code."""
    normalized = (code or "").strip().upper()
    if not INVITE_CODE_PATTERN.match(normalized) or not normalized.startswith(prefix):
        raise ValidationError("Invalid invite code.")
    return normalized


def generate_unique_invite_code(db: Client, collection: str, prefix: str) -> str:
    """Generate an invite code not already held by a document in `collection`."""
    for _ in range(INVITE_CODE_MAX_ATTEMPTS):
        code = generate_invite_code(prefix)
        existing = (
            db.collection(collection)
            .where(filter=firestore.FieldFilter("inviteCode", "==", code))
            .limit(1)
            .stream()
        )
        if not any(True for _ in existing):
            return code
    raise ConflictError("Could not allocate an invite code. Please try again.")


def snapshot_to_dict(snapshot: DocumentSnapshot) -> dict[str, Any]:
    """Return a snapshot's data with its document ID under ``id``."""
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data
