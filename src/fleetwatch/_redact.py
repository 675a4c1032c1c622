"""Contact-detail masking for debug logs.

Trip and driver documents carry customer and driver phone numbers and
emails.  Excluded documents are logged at DEBUG, so they pass through
:func:`redact_for_log` first.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

# Compared after lower-casing and dropping underscores, so ``customerPhone``
# and ``customer_phone`` both match.
_CONTACT_KEYS: frozenset[str] = frozenset(
    {
        "phone",
        "email",
        "customerphone",
        "customeremail",
        "driverphone",
        "driveremail",
        "password",
        "mqttpassword",
        "token",
    }
)


def _is_contact_key(key: str) -> bool:
    return key.lower().replace("_", "") in _CONTACT_KEYS


def redact_for_log(value: Any, *, max_string: int = 256) -> Any:
    """Return a copy of a store document with contact details masked.

    Nested maps (``pickup``, ``vehicle``) and lists are walked; long strings
    are truncated to *max_string* characters.
    """
    if isinstance(value, Mapping):
        return {
            str(key): "<redacted>" if _is_contact_key(str(key)) else redact_for_log(item, max_string=max_string)
            for key, item in value.items()
        }
    if isinstance(value, list | tuple):
        return [redact_for_log(item, max_string=max_string) for item in value]
    if isinstance(value, str) and len(value) > max_string:
        return f"{value[:max_string]}…<truncated>"
    return value
