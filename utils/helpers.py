"""Helper functions: venue/review/pricing formatting and time handling."""

from datetime import datetime, timezone
from html import escape

from services.locations import state_name

UTC = timezone.utc


def parse_timestamp(value) -> datetime | None:
    """
    Parse a backend timestamp.

    Accepts ISO strings, epoch milliseconds and Firestore-style
    ``{"_seconds": ...}`` / ``{"seconds": ...}`` objects.
    """
    if value is None or value == "":
        return None
    try:
        if isinstance(value, dict):
            seconds = value.get("_seconds", value.get("seconds"))
            return datetime.fromtimestamp(float(seconds), tz=UTC) if seconds is not None else None
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def format_datetime(dt: datetime | None, format_type: str = "user") -> str:
    """
    Format datetime for display.

    format_type: "user" -> Mon DD, YYYY, "report" -> YYYY-MM-DD HH:MM, "short" -> MM/DD HH:MM
    """
    if dt is None:
        return "-"

    if format_type == "report":
        return dt.strftime("%Y-%m-%d %H:%M")
    elif format_type == "short":
        return dt.strftime("%m/%d %H:%M")
    else:
        return dt.strftime("%b %d, %Y")


def format_price(value: float | None) -> str:
    return f"${value:.2f}" if value else "n/a"


def format_distance(miles: float) -> str:
    return f"{miles:.1f} mi"


def format_stars(rating: float) -> str:
    full = int(round(rating))
    return "★" * full + "☆" * (5 - full)


def format_rating(avg: float | None, count: int | None) -> str:
    if not count:
        return "No reviews yet"
    noun = "review" if count == 1 else "reviews"
    return f"⭐ {float(avg or 0):.1f} ({count} {noun})"


def format_venue_button(venue: dict, distance: float | None = None) -> str:
    """Short one-line label for list buttons."""
    label = venue.get("name") or "Unnamed venue"
    if venue.get("isSponsor"):
        label = f"💎 {label}"
    elif venue.get("isTopAlley"):
        label = f"🏅 {label}"

    if distance is not None:
        label += f" · {format_distance(distance)}"
    elif venue.get("reviewCount"):
        label += f" · ⭐{float(venue.get('avgRating') or 0):.1f}"
    return label


def format_venue_card(venue: dict, distance: float | None = None) -> str:
    """
    Format venue details for display to the user.

    Args:
        venue: Venue record
        distance: Distance from the user's location in miles

    Returns:
        HTML text
    """
    lines = [f"<b>{escape(venue.get('name') or 'Unnamed venue')}</b>"]

    badges = []
    if venue.get("isSponsor"):
        badges.append("💎 Sponsor")
    if venue.get("isFoundingPartner"):
        badges.append("🤝 Founding Partner")
    if venue.get("isTopAlley"):
        badges.append("🏅 Top Alley")
    if badges:
        lines.append(" · ".join(badges))

    lines.append(format_rating(venue.get("avgRating"), venue.get("reviewCount")))
    lines.append("")

    address = ", ".join(
        part for part in (
            venue.get("address"),
            venue.get("city"),
            f"{venue.get('state') or ''} {venue.get('zipCode') or ''}".strip(),
        ) if part
    )
    if address:
        lines.append(f"📍 {escape(address)}")
    if distance is not None:
        lines.append(f"🧭 {format_distance(distance)} away")
    if venue.get("phone"):
        lines.append(f"📞 {escape(venue['phone'])}")
    if venue.get("website"):
        lines.append(f"🌐 {escape(venue['website'])}")
    if venue.get("lanes"):
        lines.append(f"🎳 {venue['lanes']} lanes")

    pricing = venue.get("pricing") or {}
    prices = [
        f"{label} {format_price(pricing.get(key))}"
        for key, label in (("game", "Game"), ("hourly", "Hour"), ("shoeRental", "Shoes"))
        if pricing.get(key)
    ]
    if prices:
        lines.append(f"💵 {' | '.join(prices)}")

    if venue.get("specialsUrl"):
        lines.append(f"🏷 Specials: {escape(venue['specialsUrl'])}")

    amenities = venue.get("amenities") or []
    if amenities:
        lines.append("")
        lines.append(f"<b>Amenities:</b> {escape(', '.join(amenities))}")

    if venue.get("description"):
        lines.append("")
        lines.append(escape(venue["description"][:600]))

    return "\n".join(lines)


def format_review(review: dict) -> str:
    """One review as HTML."""
    rating = int(review.get("rating") or 0)
    author = escape(review.get("userDisplayName") or "Anonymous")
    created = format_datetime(parse_timestamp(review.get("createdAt")))
    text = f"{format_stars(rating)} <b>{author}</b> · {created}"
    if review.get("text"):
        text += f"\n{escape(review['text'])}"
    if review.get("venueName"):
        text = f"🎳 {escape(review['venueName'])}\n{text}"
    return text


def format_pricing_report(report) -> str:
    """Pricing summary (reports.generator.PricingReport) as HTML."""
    if report.city:
        place = f"{report.city}, {report.state}"
    elif report.state:
        place = state_name(report.state)
    else:
        place = "USA"

    lines = [f"💵 <b>Bowling prices: {escape(place)}</b>", f"Venues: {report.venue_count}", ""]
    lines.append(
        f"Per game: {format_price(report.average_game_price)}"
        f" ({report.venues_with_game_pricing} venues)"
    )
    lines.append(
        f"Per hour: {format_price(report.average_hourly_price)}"
        f" ({report.venues_with_hourly_pricing} venues)"
    )
    lines.append(
        f"Shoe rental: {format_price(report.average_shoe_rental_price)}"
        f" ({report.venues_with_shoe_rental_pricing} venues)"
    )
    return "\n".join(lines)
