from __future__ import annotations

from typing import Optional, Union
from datetime import date, datetime, timezone

import pandas as pd


def to_aware_utc(v: Optional[Union[str, datetime]]) -> datetime:
    """Convert input to an aware UTC datetime."""
    if v is None:
        return datetime.now(timezone.utc)
    if isinstance(v, datetime):
        return v.astimezone(timezone.utc) if v.tzinfo else v.replace(tzinfo=timezone.utc)
    ts = pd.to_datetime(v, errors="coerce", utc=True)
    if pd.isna(ts):
        return datetime.now(timezone.utc)
    return ts.to_pydatetime()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_date_string(v: Union[str, date]) -> str:
    """
    Parse a calendar date written as 'YYYY-MM-DD' (surrounding blanks allowed)
    and return it. Raises ValueError for anything else.
    """
    if isinstance(v, date):
        return v.strftime("%Y-%m-%d")
    text = (v or "").strip()
    if not text:
        raise ValueError("date must not be empty")
    ts = pd.to_datetime(text, format="%Y-%m-%d", errors="coerce")
    if pd.isna(ts):
        raise ValueError(f"'{text}' is not a valid date")
    return ts.strftime("%Y-%m-%d")
