"""Pricing reports over the venue list and Excel export based on pandas."""

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd
from openpyxl.utils import get_column_letter

from services.locations import normalize_state, state_name
from services.views import venue_state
from utils.logger import logger


REPORTS_DIR = Path("reports/files")

# Outliers kept out of the cheapest / most expensive state comparison
EXTREMES_EXCLUDED_STATES = {"DC", "PR", "HI", "AK"}

PRICE_FIELDS = ("game", "hourly", "shoeRental")


@dataclass
class PricingReport:
    venue_count: int
    average_game_price: float | None
    average_hourly_price: float | None
    average_shoe_rental_price: float | None
    venues_with_game_pricing: int
    venues_with_hourly_pricing: int
    venues_with_shoe_rental_pricing: int
    state: str | None = None
    city: str | None = None


@dataclass
class StatePriceExtreme:
    state: str
    price: float


@dataclass
class PricingExtremes:
    cheapest_by_game: StatePriceExtreme | None = None
    most_expensive_by_game: StatePriceExtreme | None = None
    cheapest_by_hour: StatePriceExtreme | None = None
    most_expensive_by_hour: StatePriceExtreme | None = None


def venue_price(venue: dict, field: str) -> float | None:
    """Positive price from venue["pricing"][field], else None."""
    pricing = venue.get("pricing") or {}
    try:
        value = float(pricing.get(field))
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def has_pricing(venue: dict) -> bool:
    return any(venue_price(venue, f) is not None for f in PRICE_FIELDS)


def _average(values: list[float]) -> float | None:
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def _select(venues: list[dict], state: str | None, city: str | None) -> list[dict]:
    selected = venues
    if state:
        code = normalize_state(state)
        selected = [v for v in selected if venue_state(v) == code]
    if city:
        wanted = city.strip().lower()
        selected = [v for v in selected if (v.get("city") or "").strip().lower() == wanted]
    return selected


def build_pricing_report(
    venues: list[dict],
    state: str | None = None,
    city: str | None = None,
) -> PricingReport:
    """
    Aggregate prices for the USA, a state or a city.

    Args:
        venues: Venue list
        state: Limit to one state (code or name)
        city: Limit to one city inside the state

    Returns:
        PricingReport; averages use positive prices only and are None when
        no venue has that price
    """
    selected = _select(venues, state, city)
    game = [p for p in (venue_price(v, "game") for v in selected) if p is not None]
    hourly = [p for p in (venue_price(v, "hourly") for v in selected) if p is not None]
    shoes = [p for p in (venue_price(v, "shoeRental") for v in selected) if p is not None]

    return PricingReport(
        venue_count=len(selected),
        average_game_price=_average(game),
        average_hourly_price=_average(hourly),
        average_shoe_rental_price=_average(shoes),
        venues_with_game_pricing=len(game),
        venues_with_hourly_pricing=len(hourly),
        venues_with_shoe_rental_pricing=len(shoes),
        state=normalize_state(state) if state else None,
        city=city.strip() if city else None,
    )


def pricing_states(venues: list[dict]) -> list[str]:
    """States with at least one priced venue."""
    return sorted({venue_state(v) for v in venues if v.get("state") and has_pricing(v)})


def pricing_cities(venues: list[dict], state: str) -> list[str]:
    """Cities of a state with at least one priced venue."""
    return sorted({
        v["city"].strip()
        for v in _select(venues, state, None)
        if v.get("city") and has_pricing(v)
    })


def pricing_extremes(venues: list[dict]) -> PricingExtremes:
    """Cheapest and most expensive state by average game and hourly price."""
    extremes = PricingExtremes()
    states = [s for s in pricing_states(venues) if s not in EXTREMES_EXCLUDED_STATES]
    reports = [build_pricing_report(venues, state=s) for s in states]

    by_game = [StatePriceExtreme(r.state, r.average_game_price) for r in reports if r.average_game_price]
    by_hour = [StatePriceExtreme(r.state, r.average_hourly_price) for r in reports if r.average_hourly_price]

    if by_game:
        extremes.cheapest_by_game = min(by_game, key=lambda e: e.price)
        extremes.most_expensive_by_game = max(by_game, key=lambda e: e.price)
    if by_hour:
        extremes.cheapest_by_hour = min(by_hour, key=lambda e: e.price)
        extremes.most_expensive_by_hour = max(by_hour, key=lambda e: e.price)
    return extremes


def _report_row(report: PricingReport) -> dict:
    row = asdict(report)
    return {
        "State": state_name(row["state"]) if row["state"] else "USA",
        "City": row["city"] or "",
        "Venues": row["venue_count"],
        "Avg game ($)": row["average_game_price"],
        "Avg hourly ($)": row["average_hourly_price"],
        "Avg shoe rental ($)": row["average_shoe_rental_price"],
        "Priced by game": row["venues_with_game_pricing"],
        "Priced by hour": row["venues_with_hourly_pricing"],
        "Priced shoe rental": row["venues_with_shoe_rental_pricing"],
    }


def _autofit(worksheet, df: pd.DataFrame) -> None:
    # Auto column width (max 50 chars); empty cells count as zero width
    for idx, col in enumerate(df.columns, start=1):
        values = df[col].map(lambda v: 0 if pd.isna(v) else len(str(v)))
        max_length = max(values.max() if not values.empty else 0, len(str(col))) + 2
        worksheet.column_dimensions[get_column_letter(idx)].width = min(max_length, 50)


def generate_pricing_workbook(venues: list[dict], reports_dir: Path = REPORTS_DIR) -> Path | None:
    """
    Write USA / state / city pricing sheets to an Excel file.

    Returns:
        Path to the file or None when there is nothing to report or on error
    """
    try:
        states = pricing_states(venues)
        if not states:
            logger.info("No priced venues found for pricing report")
            return None

        usa = pd.DataFrame([_report_row(build_pricing_report(venues))])
        by_state = pd.DataFrame([_report_row(build_pricing_report(venues, state=s)) for s in states])
        by_city = pd.DataFrame([
            _report_row(build_pricing_report(venues, state=s, city=c))
            for s in states
            for c in pricing_cities(venues, s)
        ])

        reports_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        file_path = reports_dir / f"pricing_report_{timestamp}.xlsx"

        with pd.ExcelWriter(file_path, engine="openpyxl") as writer:
            for sheet_name, df in (("USA", usa), ("States", by_state), ("Cities", by_city)):
                df.to_excel(writer, index=False, sheet_name=sheet_name)
                _autofit(writer.sheets[sheet_name], df)

        logger.info(
            f"Generated pricing report: {file_path.name}, "
            f"{len(states)} states, {len(by_city)} cities"
        )
        return file_path

    except Exception as e:
        logger.error(f"Error generating pricing report: {e}", exc_info=True)
        return None
