import pytest

from app.payments.model import format_amount, join_name, parse_amount_cents


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("50", 5_000),
        ("50.00", 5_000),
        ("50.5", 5_050),
        (50, 5_000),
        (50.25, 5_025),
        ("1,250.00", 125_000),
        (" 10 ", 1_000),
    ],
)
def test_parse_amount_cents(raw, expected):
    assert parse_amount_cents(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "abc", "0", "-1", "10.001", "NaN", "Infinity", True])
def test_parse_amount_cents_rejects(raw):
    assert parse_amount_cents(raw) is None


def test_format_and_join():
    assert format_amount(5_050) == "50.50"
    assert join_name("Jane", None, " Doe ") == "Jane Doe"
    assert join_name(None, "") is None
