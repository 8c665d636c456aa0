from datetime import datetime, timezone

from sqlalchemy import Column, DateTime


def utcnow() -> datetime:
    """Naive UTC now; the store keeps naive UTC timestamps."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_timestamp(moment: datetime) -> int:
    return int(moment.replace(tzinfo=timezone.utc).timestamp())


def from_timestamp(value: int | float) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)


def utc_column(nullable: bool = False, index: bool = False) -> Column:
    """Column for naive UTC values, declared so the ORM never expects tz-aware ones."""
    return Column(DateTime(timezone=False), nullable=nullable, index=index)
