"""Tests for venue Excel parsing."""

import pandas as pd

from services.import_excel import parse_venues_excel


def write_xlsx(path, rows):
    pd.DataFrame(rows).to_excel(path, index=False, engine="openpyxl")
    return path


def test_parse_valid_rows(tmp_path):
    path = write_xlsx(tmp_path / "venues.xlsx", [
        {
            "Venue Name": "Strike Zone", "City": "El Paso", "State": "Texas", "Zip": 79901,
            "Lanes": 24, "Amenities": "Leagues, Arcade", "Price per game": "$5.50", "Shoes": 4,
        },
        {
            "Venue Name": "Mountain Pins", "City": "Charleston", "State": "wv", "Zip": None,
            "Lanes": None, "Amenities": None, "Price per game": None, "Shoes": None,
        },
    ])

    items, errors = parse_venues_excel(path)

    assert errors == []
    assert len(items) == 2
    first = items[0]
    assert first["name"] == "Strike Zone"
    assert first["state"] == "TX"
    assert first["zipCode"] == "79901"
    assert first["lanes"] == 24
    assert first["amenities"] == ["Leagues", "Arcade"]
    assert first["pricing"] == {"game": 5.5, "shoeRental": 4.0}
    assert first["isActive"] is True

    second = items[1]
    assert second["state"] == "WV"
    assert second["pricing"] is None
    assert second["lanes"] == 0


def test_rows_without_required_values_are_skipped(tmp_path):
    path = write_xlsx(tmp_path / "venues.xlsx", [
        {"Name": "", "City": "Austin", "State": "TX"},
        {"Name": "No City", "City": "", "State": "TX"},
        {"Name": "Austin Bowl", "City": "Austin", "State": "TX"},
    ])

    items, errors = parse_venues_excel(path)

    assert [i["name"] for i in items] == ["Austin Bowl"]
    assert errors == [
        "Row 2: empty name, skipped.",
        "Row 3: city and state are required, skipped.",
    ]


def test_missing_required_column(tmp_path):
    path = write_xlsx(tmp_path / "venues.xlsx", [{"Name": "Austin Bowl", "City": "Austin"}])

    items, errors = parse_venues_excel(path)

    assert items == []
    assert errors == ["Missing required column(s): state."]


def test_unreadable_file(tmp_path):
    path = tmp_path / "broken.xlsx"
    path.write_text("not a workbook")

    items, errors = parse_venues_excel(path)

    assert items == []
    assert errors[0].startswith("Could not read file")
