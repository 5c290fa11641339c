# farmhub/conflicts.py
from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from typing import Iterator, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from farmhub.errors import ConflictError

logger = logging.getLogger(__name__)

# SQLite:     UNIQUE constraint failed: users.email, users.phone_number
# PostgreSQL: duplicate key value violates unique constraint "users_email_key"
#             DETAIL:  Key (email)=(a@x.com) already exists.
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: ([\w.,\s]+)")
_PG_UNIQUE_KEY = re.compile(r"Key \(([^)]+)\)=\(.*\) already exists")

USER_UNIQUE_FIELDS: dict[str, str] = {
    "email": "Email is already in use by another user.",
    "phone_number": "Phone number is already in use by another user.",
}


def unique_violation_targets(exc: IntegrityError) -> list[str]:
    """
    Column names named by a unique-constraint failure, in driver order.
    Empty when the integrity error is not a uniqueness violation.
    """
    message = str(exc.orig) if exc.orig is not None else str(exc)

    m = _SQLITE_UNIQUE.search(message)
    if m:
        return [part.strip().rsplit(".", 1)[-1] for part in m.group(1).split(",") if part.strip()]

    m = _PG_UNIQUE_KEY.search(message)
    if m:
        return [part.strip().strip('"') for part in m.group(1).split(",")]

    return []


def translate_unique_violation(exc: IntegrityError, messages: Mapping[str, str]) -> ConflictError | None:
    """Map the first recognised target field to a ConflictError; None if no field is known."""
    targets = unique_violation_targets(exc)
    for field, message in messages.items():
        if field in targets:
            return ConflictError(message, field=field)
    return None


@contextmanager
def unique_conflicts(db: Session, messages: Mapping[str, str]) -> Iterator[None]:
    """
    Wrap a write: roll back on IntegrityError, raise ConflictError for a known
    unique field, re-raise anything else untouched.
    """
    try:
        yield
    except IntegrityError as exc:
        db.rollback()
        conflict = translate_unique_violation(exc, messages)
        if conflict is None:
            raise
        logger.warning("Unique constraint violated on %s", conflict.field)
        raise conflict from exc
