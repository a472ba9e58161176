from __future__ import annotations

import pytest

from calls.errors import InvalidDestinationError
from calls.phone import normalize_destination


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("5551234567", "+15551234567"),
        ("(555) 123-4567", "+15551234567"),
        ("555.123.4567", "+15551234567"),
        ("+1 555 123 4567", "+15551234567"),
        ("15551234567", "+15551234567"),
        ("+44 20 7946 0958", "+442079460958"),
    ],
)
def test_normalize_destination(raw, expected):
    assert normalize_destination(raw) == expected


def test_normalize_uses_configured_country_code():
    assert normalize_destination("0791234567", country_code="41") == "+410791234567"


@pytest.mark.parametrize("raw", ["", "   ", "call me", "12345", "1234567890123456"])
def test_normalize_rejects_implausible_numbers(raw):
    with pytest.raises(InvalidDestinationError):
        normalize_destination(raw)
