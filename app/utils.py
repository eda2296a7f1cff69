import logging
import re
import threading
import unicodedata
from functools import wraps
from datetime import datetime, timezone


# Custom logging formatter to support colors
class ColoredFormatter(logging.Formatter):
    # Define color codes
    COLORS = {
        'DEBUG': '\033[94m',   # Blue
        'INFO': '\033[92m',    # Green
        'WARNING': '\033[93m', # Yellow
        'ERROR': '\033[91m',   # Red
        'CRITICAL': '\033[95m' # Magenta
    }
    RESET = '\033[0m'  # Reset color

    def format(self, record):
        # Add color to the log level name
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.RESET}"

        return super().format(record)


def sanitize_sensitive_data(data, sensitive_keys):
    """
    Mask values whose key contains one of `sensitive_keys` before logging.

    Args:
        data: Dictionary or list to sanitize (nested structures are walked)
        sensitive_keys: List of key fragments to mask

    Returns:
        Sanitized copy of the data
    """
    if isinstance(data, dict):
        sanitized = {}
        for k, v in data.items():
            key_lower = str(k).lower()
            if any(sens in key_lower for sens in sensitive_keys):
                sanitized[k] = "**REDACTED**" if v else None
            elif isinstance(v, (dict, list)):
                sanitized[k] = sanitize_sensitive_data(v, sensitive_keys)
            else:
                sanitized[k] = v
        return sanitized

    elif isinstance(data, list):
        return [sanitize_sensitive_data(item, sensitive_keys) if isinstance(item, (dict, list)) else item for item in data]

    return data


def debounce(wait):
    """Decorator that postpones a function's execution until after `wait` seconds
    have elapsed since the last time it was invoked."""
    def decorator(fn):
        @wraps(fn)
        def debounced(*args, **kwargs):
            def call_it():
                fn(*args, **kwargs)
            if hasattr(debounced, '_timer'):
                debounced._timer.cancel()
            debounced._timer = threading.Timer(wait, call_it)
            debounced._timer.daemon = True
            debounced._timer.start()
        return debounced
    return decorator


def slugify(value):
    """'Action RPG' -> 'action-rpg', 'Ролевая игра' -> 'ролевая-игра'. Letters of any script are kept."""
    if value is None:
        return ''
    value = unicodedata.normalize('NFKC', str(value)).lower()
    return re.sub(r'[\W_]+', '-', value).strip('-')


def now_utc():
    """Returns current datetime in UTC (aware)"""
    return datetime.now(timezone.utc)


def ensure_utc(dt):
    """
    Ensure a datetime object is aware and in UTC.
    Handles ISO strings, None, and naive datetimes (assumed UTC, as SQLite returns them).
    """
    if dt is None:
        return None

    # Handle strings (ISO format)
    if isinstance(dt, str):
        try:
            dt = datetime.fromisoformat(dt.replace('Z', '+00:00'))
        except (ValueError, TypeError, AttributeError):
            return None

    if not hasattr(dt, 'tzinfo'):
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)
