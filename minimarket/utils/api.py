# --- minimarket/utils/api.py ---
from datetime import datetime, timezone


def epoch_ms(dt):
    """Epoch milliseconds for a datetime; naive values are taken as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def _envelope(status, message, data):
    return {
        "status": status,
        "message": message,
        "data": {
            **(data or {}),
            "API_TIME": epoch_ms(datetime.now(timezone.utc)),
        },
    }


def api_ok(message, data=None):
    return _envelope(True, message, data)


def api_error(message, data=None):
    return _envelope(False, message, data)
