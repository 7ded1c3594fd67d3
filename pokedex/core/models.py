"""Pokemon, favorites and list models."""

from typing import Any, Optional

from pydantic import BaseModel, Field

from pokedex.core.resources import pokemon_id_from_url
from pokedex.utils.helpers import format_dex_number


class PokemonSummary(BaseModel):
    """A named resource from the list endpoint."""

    id: str  # "" when the URL carries no id
    name: str
    resource_url: str

    @classmethod
    def from_resource(cls, resource: dict) -> "PokemonSummary":
        url = resource.get("url", "")
        return cls(id=pokemon_id_from_url(url), name=resource.get("name", ""), resource_url=url)


class ListPage(BaseModel):
    """One page as returned by the list endpoint."""

    count: int
    results: list[PokemonSummary] = Field(default_factory=list)


class InfinitePage(BaseModel):
    """One page of an infinite list with its pagination cursor."""

    items: list[PokemonSummary]
    count: int
    offset: int
    next_offset: Optional[int] = None


class PokemonType(BaseModel):
    type_name: str


class PokemonAbility(BaseModel):
    ability_name: str


class PokemonStat(BaseModel):
    stat_name: str
    base_value: int


class PokemonDetail(BaseModel):
    """Detail for a single Pokemon."""

    id: int = Field(gt=0)
    name: str
    base_experience: Optional[int] = None
    weight: int = 0  # Tenths of kg
    height: int = 0  # Tenths of m
    types: list[PokemonType] = Field(default_factory=list)
    abilities: list[PokemonAbility] = Field(default_factory=list)
    stats: list[PokemonStat] = Field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "PokemonDetail":
        """Build a detail model from a raw `/pokemon/{name}` payload."""
        return cls(
            id=data["id"],
            name=data["name"],
            base_experience=data.get("base_experience"),
            weight=data.get("weight") or 0,
            height=data.get("height") or 0,
            types=[
                PokemonType(type_name=t["type"]["name"])
                for t in sorted(data.get("types", []), key=lambda t: t.get("slot", 0))
            ],
            abilities=[
                PokemonAbility(ability_name=a["ability"]["name"])
                for a in sorted(data.get("abilities", []), key=lambda a: a.get("slot", 0))
            ],
            stats=[
                PokemonStat(stat_name=s["stat"]["name"], base_value=s["base_stat"])
                for s in data.get("stats", [])
            ],
        )

    @property
    def weight_kg(self) -> float:
        return self.weight / 10

    @property
    def height_m(self) -> float:
        return self.height / 10

    @property
    def display_id(self) -> str:
        return format_dex_number(self.id)

    @property
    def type_names(self) -> list[str]:
        return [t.type_name for t in self.types]

    @property
    def ability_names(self) -> list[str]:
        return [a.ability_name for a in self.abilities]


class SpeciesRef(BaseModel):
    """The part of a species payload the evolution resolver needs."""

    name: str
    evolution_chain_url: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "SpeciesRef":
        chain = data.get("evolution_chain") or {}
        return cls(name=data["name"], evolution_chain_url=chain.get("url", ""))


class EvolutionStep(BaseModel):
    """One stage of a flattened evolution chain."""

    id: int
    name: str
    min_level: Optional[int] = None


class FavoriteRecord(BaseModel):
    """A favorited Pokemon as persisted by the favorites store."""

    id: int
    name: str
    image_url: str = ""
    created_at: str  # ISO-8601


class FavoriteStats(BaseModel):
    """Aggregates over the most recent favorites."""

    count: int = 0
    avg_base_experience: float = 0
    avg_weight_kg: float = 0
    avg_height_m: float = 0


class ToggleFavoriteVars(BaseModel):
    """Variables for the toggle-favorite mutation."""

    id: int
    name: str
    image_url: str = ""
    is_currently_favorite: bool


def filter_by_name(items: list[PokemonSummary], query: str) -> list[PokemonSummary]:
    """Case-insensitive substring search over loaded summaries."""
    needle = query.strip().lower()
    if not needle:
        return list(items)
    return [item for item in items if needle in item.name.lower()]
