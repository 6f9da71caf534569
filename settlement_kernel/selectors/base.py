"""
Module: settlement_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the read side of the kernel: they load record sets for a
    partner, period or status and hand frozen views (or engine results
    computed over them) back to the caller.
Architecture position: Kernel > Selectors.  May import models/, domain/ and
    settlement_engines.  MUST NOT import services/.

Invariants enforced:
    - Read-only access: selectors never call session.add(), delete(),
      flush() or commit().
    - Selectors return frozen dataclasses or engine results, never ORM
      instances.
    - The caller owns the session and its transaction scope.
"""

from abc import ABC
from datetime import date, datetime, time, timedelta, timezone
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from settlement_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


def day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """UTC instants covering the days ``start`` through ``end`` (end exclusive bound)."""
    return (
        datetime.combine(start, time.min, tzinfo=timezone.utc),
        datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc),
    )


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs or computed results.
    """

    def __init__(self, session: Session):
        self.session = session
