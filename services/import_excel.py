"""Parse Excel file and return venue data for import."""

from pathlib import Path

import pandas as pd

from services.locations import normalize_state
from utils.logger import logger


# Column key -> accepted header spellings (lower-case)
COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("name", "venue", "venue name", "bowling alley"),
    "address": ("address", "street", "street address"),
    "city": ("city", "town"),
    "state": ("state", "st", "state code"),
    "zipCode": ("zip", "zip code", "zipcode", "postal code"),
    "phone": ("phone", "phone number", "telephone"),
    "website": ("website", "url", "web site"),
    "lanes": ("lanes", "number of lanes", "lane count"),
    "amenities": ("amenities", "features"),
    "game": ("price per game", "game price", "per game"),
    "hourly": ("price per hour", "hourly price", "per hour"),
    "shoeRental": ("shoe rental", "shoe rental price", "shoes"),
}

REQUIRED_COLUMNS = ("name", "city", "state")


def _cell_text(row: pd.Series, col) -> str:
    if col is None or pd.isna(row[col]):
        return ""
    text = str(row[col]).strip()
    return "" if text in ("nan", "-") else text


def _cell_number(row: pd.Series, col) -> float | None:
    text = _cell_text(row, col).lstrip("$")
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    return value if value > 0 else None


def parse_venues_excel(file_path: Path) -> tuple[list[dict], list[str]]:
    """
    Parse Excel file with venue data.

    Expected columns (case-insensitive, flexible naming):
        - name, city, state (required)
        - address, zip, phone, website, lanes (optional)
        - amenities: comma-separated tags (optional)
        - price per game / price per hour / shoe rental (optional)

    Returns:
        Tuple of (items_list, errors_list); items are camelCase venue
        payloads ready for the venues API
    """
    errors: list[str] = []
    items: list[dict] = []

    try:
        df = pd.read_excel(file_path, engine="openpyxl")
    except Exception as e:
        return [], [f"Could not read file: {e}"]

    if df.empty:
        return [], ["File is empty, nothing to import."]

    col_map: dict[str, object] = {key: None for key in COLUMN_ALIASES}
    for col in df.columns:
        lower = str(col).strip().lower()
        for key, aliases in COLUMN_ALIASES.items():
            if lower in aliases and col_map[key] is None:
                col_map[key] = col
                break

    missing = [key for key in REQUIRED_COLUMNS if col_map[key] is None]
    if missing:
        return [], [f"Missing required column(s): {', '.join(missing)}."]

    for idx, row in df.iterrows():
        row_num = idx + 2  # Excel rows start at 1, header is row 1

        name = _cell_text(row, col_map["name"])
        city = _cell_text(row, col_map["city"])
        state = _cell_text(row, col_map["state"])

        if not name:
            errors.append(f"Row {row_num}: empty name, skipped.")
            continue
        if not city or not state:
            errors.append(f"Row {row_num}: city and state are required, skipped.")
            continue

        lanes = _cell_number(row, col_map["lanes"])
        amenities = [a.strip() for a in _cell_text(row, col_map["amenities"]).split(",") if a.strip()]
        pricing = {}
        for key in ("game", "hourly", "shoeRental"):
            price = _cell_number(row, col_map[key])
            if price is not None:
                pricing[key] = price

        zip_code = _cell_text(row, col_map["zipCode"])
        if zip_code.endswith(".0"):
            zip_code = zip_code[:-2].zfill(5)

        items.append({
            "name": name,
            "address": _cell_text(row, col_map["address"]),
            "city": city,
            "state": normalize_state(state),
            "zipCode": zip_code,
            "phone": _cell_text(row, col_map["phone"]) or None,
            "website": _cell_text(row, col_map["website"]) or None,
            "lanes": int(lanes) if lanes else 0,
            "amenities": amenities,
            "pricing": pricing or None,
            "isActive": True,
        })

    logger.info(f"Parsed Excel: {len(items)} venues, {len(errors)} errors")
    return items, errors
