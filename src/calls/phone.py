from __future__ import annotations

import re

from calls.errors import InvalidDestinationError

_NON_DIGITS = re.compile(r"\D")

# E.164 allows at most 15 digits; anything under 8 is not a dialable number.
MIN_DIGITS = 8
MAX_DIGITS = 15


def normalize_destination(raw: str, *, country_code: str = "1") -> str:
    """Normalize user-typed phone input to E.164.

    Formatting characters are stripped, a bare 10-digit national number gets
    the default country code, and the result is prefixed with ``+``.
    """

    digits = _NON_DIGITS.sub("", raw or "")
    if not digits:
        raise InvalidDestinationError("Phone number is required")

    if len(digits) == 10:
        digits = f"{country_code}{digits}"

    if not MIN_DIGITS <= len(digits) <= MAX_DIGITS:
        raise InvalidDestinationError(f"Phone number has an invalid length: {raw!r}")

    return f"+{digits}"
