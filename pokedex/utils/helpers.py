"""Helper utilities for Pokedex."""

import math
from datetime import datetime, timezone

SPRITE_BASE_URL = "https://raw.githubusercontent.com/PokeAPI/sprites/master/sprites/pokemon"


def utc_now() -> datetime:
    """Get current timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_timestamp(moment: datetime) -> str:
    """Render a datetime as a fixed-width ISO-8601 string.

    A fixed width keeps lexicographic and chronological order identical,
    which both favorites backends rely on for sorting.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def normalize_name(name: str) -> str:
    """Normalize a Pokemon name for use in URLs and cache keys."""
    return name.strip().lower()


def round_half_up(value: float, digits: int = 1) -> float:
    """Round like Math.round does: halves go up, not to even."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def average(values: list[float]) -> float:
    """Average rounded to one decimal place, 0 for an empty list."""
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def sprite_url(pokemon_id: int) -> str:
    """Get the default sprite URL for a Pokemon id."""
    return f"{SPRITE_BASE_URL}/{pokemon_id}.png"


def format_dex_number(pokemon_id: int) -> str:
    """Format an id as a Pokedex number, e.g. 25 -> #025."""
    return f"#{pokemon_id:03d}"
