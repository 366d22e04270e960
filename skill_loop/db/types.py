"""Column types that behave the same on PostgreSQL and SQLite."""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator

# JSONB in production, plain JSON where the dialect has no JSONB (test SQLite)
JSONType = JSONB(astext_type=Text()).with_variant(JSON(), "sqlite")


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetime.

    Values are normalized to UTC on the way in. Backends that drop tzinfo
    (SQLite) hand back naive values, which are re-tagged as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("UTCDateTime requires timezone-aware datetimes")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
