import pytest

from london_sqft.common.address import join_address_parts, normalise_address

SAMPLES = [
    "Flat 3, 12 Westferry Road",
    "Apartment 3 12 Westferry Rd.",
    "apt. 4b; ground floor (rear)",
    "Unit 7: 'The Mill' #2",
    "  FIRST  FLOOR FLAT,  1 HIGH   STREET ",
    "Ground Floor Flat",
    "FLOOR",
    "",
    "Ünïcode Court, 5",
]


def test_normalise_uppercases_and_strips_punctuation():
    assert normalise_address("12, Westferry Rd.") == "12 WESTFERRY RD"
    assert normalise_address("\"Rose\" Cottage; (Rear)") == "ROSE COTTAGE REAR"


def test_normalise_maps_flat_synonyms():
    assert normalise_address("Apartment 3") == "FLAT 3"
    assert normalise_address("apt. 3") == "FLAT 3"
    assert normalise_address("Unit 3") == "FLAT 3"


def test_normalise_drops_floor_and_abbreviates_ground():
    assert normalise_address("Ground Floor Flat, 1 High Street") == "GND FLAT 1 HIGH STREET"
    assert normalise_address("first floor flat") == "FIRST FLAT"


def test_normalise_keeps_whole_words_only():
    assert normalise_address("Aptitude House") == "APTITUDE HOUSE"
    assert normalise_address("Reunited Place") == "REUNITED PLACE"


def test_normalise_handles_empty_input():
    assert normalise_address(None) == ""
    assert normalise_address("   ") == ""


@pytest.mark.parametrize("raw", SAMPLES)
def test_normalise_is_idempotent(raw):
    once = normalise_address(raw)
    assert normalise_address(once) == once


def test_join_address_parts_skips_blanks():
    assert join_address_parts(["Flat 1", None, "  ", " 2 High St "]) == "Flat 1 2 High St"
