"""Short save codes that let anonymous writers resume a draft later."""
from __future__ import annotations

import secrets
import string
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from flask import current_app

from ..models import SavedSession, db, utcnow
from .errors import NotFoundError, ValidationError

CODE_LENGTH = 6
CODE_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_TTL_DAYS = 30
MAX_ATTEMPTS = 10


def generate_code(length: int = CODE_LENGTH) -> str:
    """Random uppercase alphanumeric save code."""
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code: Optional[str]) -> str:
    return (code or '').strip().upper()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_expired(saved: SavedSession, now: Optional[datetime] = None) -> bool:
    return _as_utc(saved.expires_at) <= (now or utcnow())


def save_snapshot(data: Dict[str, Any], ttl_days: Optional[int] = None) -> SavedSession:
    """Persist an anonymous session snapshot under a fresh code."""
    if not isinstance(data, dict) or not data:
        raise ValidationError("Nothing to save")
    if ttl_days is None:
        ttl_days = current_app.config.get('SAVE_CODE_TTL_DAYS', DEFAULT_TTL_DAYS)

    code = generate_code()
    attempts = 1
    while db.session.query(SavedSession.id).filter_by(save_code=code).first() is not None:
        if attempts >= MAX_ATTEMPTS:
            raise RuntimeError("Could not allocate a unique save code")
        code = generate_code()
        attempts += 1

    saved = SavedSession(
        save_code=code,
        session_data=data,
        expires_at=utcnow() + timedelta(days=ttl_days),
    )
    db.session.add(saved)
    try:
        db.session.commit()
    except Exception as e:
        current_app.logger.error(f"Failed to store save code {code}: {e}")
        db.session.rollback()
        raise
    current_app.logger.info(f"Stored anonymous session under save code {code}")
    return saved


def load_snapshot(code: str) -> SavedSession:
    """Look up a snapshot by code (case-insensitive); expired codes are not found."""
    normalized = normalize_code(code)
    saved = db.session.query(SavedSession).filter_by(save_code=normalized).first()
    if saved is None:
        raise NotFoundError("Save code not found. Check the code and try again.")
    if is_expired(saved):
        current_app.logger.warning(f"Save code {normalized} has expired")
        raise NotFoundError("This save code has expired.")
    return saved


def expire_snapshot(code: str) -> None:
    """Delete a snapshot so its code can no longer be used."""
    normalized = normalize_code(code)
    saved = db.session.query(SavedSession).filter_by(save_code=normalized).first()
    if saved is None:
        raise NotFoundError("Save code not found. Check the code and try again.")
    db.session.delete(saved)
    db.session.commit()


def purge_expired(now: Optional[datetime] = None) -> int:
    """Remove every expired snapshot; returns how many were deleted."""
    now = now or utcnow()
    removed = 0
    for saved in db.session.query(SavedSession).all():
        if is_expired(saved, now):
            db.session.delete(saved)
            removed += 1
    if removed:
        db.session.commit()
        current_app.logger.info(f"Purged {removed} expired save codes")
    return removed
