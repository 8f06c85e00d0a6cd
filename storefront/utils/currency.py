"""Money helpers: amounts are stored as integer cents, providers want decimal strings."""
from datetime import datetime, timezone


def format_cents(amount_cents: int) -> str:
    """1999 -> '19.99'."""
    sign = "-" if amount_cents < 0 else ""
    whole, cents = divmod(abs(int(amount_cents)), 100)
    return f"{sign}{whole}.{cents:02d}"


def ensure_aware(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC (SQLite drops tzinfo, TokenPay sends none)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
