# scrumboard/models/common.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    # All timestamps are stored as naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_github_datetime(value: str | None) -> datetime | None:
    """Parse GitHub's ISO-8601 timestamps ("2024-03-01T10:00:00Z") into naive UTC."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
