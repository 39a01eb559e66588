"""Derived batch status. Every view that shows or filters batches by status goes through here."""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from internhub.core.config import settings
from internhub.models.batch import BatchStatus


def local_zone() -> ZoneInfo:
    return ZoneInfo(settings.TIMEZONE)


def today() -> date:
    return datetime.now(local_zone()).date()


def as_date(value: Any) -> date:
    """
    Reduces a date-like value to its calendar day in the configured timezone.

    Aware datetimes (and ISO strings carrying a time) are converted to local
    time before truncating; plain dates and date-only strings are taken as-is.
    Raises ValueError for anything that is not ISO formatted.
    """
    if isinstance(value, str) and len(value) > 10:
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(local_zone())
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def batch_status(batch: Dict[str, Any], on: Optional[date] = None) -> BatchStatus:
    current = as_date(on) if on is not None else today()
    if current < as_date(batch["start_date"]):
        return BatchStatus.YET_TO_START
    if current > as_date(batch["end_date"]):
        return BatchStatus.COMPLETED
    return BatchStatus.ONGOING


def ongoing_batches(batches: Iterable[Dict[str, Any]], on: Optional[date] = None) -> List[Dict[str, Any]]:
    return [b for b in batches if batch_status(b, on) == BatchStatus.ONGOING]


def completed_batches(batches: Iterable[Dict[str, Any]], on: Optional[date] = None) -> List[Dict[str, Any]]:
    return [b for b in batches if batch_status(b, on) == BatchStatus.COMPLETED]


def active_batches(batches: Iterable[Dict[str, Any]], on: Optional[date] = None) -> List[Dict[str, Any]]:
    """Batches a student can still join: ongoing or yet to start."""
    return [b for b in batches if batch_status(b, on) != BatchStatus.COMPLETED]
