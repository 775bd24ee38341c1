import pytest

from shared.regions import is_coordinate_pair, parse_state_district


@pytest.mark.parametrize("address,expected", [
    ("Sassoon Road, Pune, Maharashtra 411001", ("Maharashtra", "Pune")),
    ("12 Anna Salai, Chennai, Tamil Nadu", ("Tamil Nadu", "Chennai")),
    ("Connaught Place, New Delhi, Delhi", ("Delhi", "New Delhi")),
    ("Somewhere with no region", (None, None)),
    ("", (None, None)),
])
def test_parse_state_district(address, expected):
    assert parse_state_district(address) == expected


@pytest.mark.parametrize("text,expected", [
    ("18.5204, 73.8567", True),
    ("-33.86,151.20", True),
    ("FC Road, Pune", False),
    ("18.5204", False),
    ("", False),
])
def test_is_coordinate_pair(text, expected):
    assert is_coordinate_pair(text) is expected
