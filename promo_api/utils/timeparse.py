# promo_api/utils/timeparse.py
from datetime import datetime, timezone

def parse_iso8601(s):
    """ISO-8601 string (or datetime) to naive UTC; None when missing or unparsable."""
    if s is None:
        return None
    if isinstance(s, datetime):
        dt = s
    else:
        s = str(s).strip()
        if not s:
            return None
        # support trailing 'Z' (UTC)
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            return None
    if dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)  # store naive UTC
    return dt

def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)
