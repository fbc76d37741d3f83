from datetime import datetime, timezone


def utc_now() -> datetime:
    """Timezone-aware current time used for record timestamps."""

    return datetime.now(timezone.utc)
