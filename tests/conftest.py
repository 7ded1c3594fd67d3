"""Shared fixtures for Pokedex tests."""

import asyncio
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
import pytest_asyncio
from typer.testing import CliRunner

from pokedex.core.errors import NetworkError
from pokedex.core.models import ListPage, PokemonDetail, PokemonSummary, SpeciesRef
from pokedex.data.favorites import (
    KeyValueFavoritesStore,
    MemoryKeyValueStorage,
    SQLiteFavoritesStore,
)
from pokedex.data.queries import PokedexQueries
from pokedex.data.query_cache import QueryCache
from pokedex.utils import config as config_module
from pokedex.utils.config import Config

BASE_URL = "https://pokeapi.co/api/v2"


def species_resource(name: str, species_id: int) -> dict:
    return {"name": name, "url": f"{BASE_URL}/pokemon-species/{species_id}/"}


def chain_node(name: str, species_id: int, children=(), min_level: Optional[int] = None) -> dict:
    """Build an evolution chain node the way PokeAPI shapes it."""
    details = [{"min_level": min_level, "trigger": {"name": "level-up"}}] if min_level else []
    return {
        "species": species_resource(name, species_id),
        "evolution_details": details,
        "evolves_to": list(children),
    }


def pokemon_payload(
    pokemon_id: int,
    name: str,
    base_experience: Optional[int] = 100,
    weight: int = 100,
    height: int = 10,
    types: tuple = ("normal",),
) -> dict:
    return {
        "id": pokemon_id,
        "name": name,
        "base_experience": base_experience,
        "weight": weight,
        "height": height,
        "order": pokemon_id,
        "is_default": True,
        "types": [
            {"slot": i + 1, "type": {"name": t, "url": f"{BASE_URL}/type/{i + 1}/"}}
            for i, t in enumerate(types)
        ],
        "abilities": [
            {"slot": 1, "is_hidden": False, "ability": {"name": "static", "url": f"{BASE_URL}/ability/9/"}},
            {"slot": 3, "is_hidden": True, "ability": {"name": "lightning-rod", "url": f"{BASE_URL}/ability/31/"}},
        ],
        "stats": [
            {"stat": {"name": "hp", "url": f"{BASE_URL}/stat/1/"}, "base_stat": 35, "effort": 0},
            {"stat": {"name": "speed", "url": f"{BASE_URL}/stat/6/"}, "base_stat": 90, "effort": 2},
        ],
        "species": species_resource(name, pokemon_id),
    }


@pytest.fixture
def pikachu_payload() -> dict:
    return pokemon_payload(25, "pikachu", base_experience=112, weight=60, height=4, types=("electric",))


@pytest.fixture
def pikachu_species_payload() -> dict:
    return {
        "id": 25,
        "name": "pikachu",
        "evolution_chain": {"url": f"{BASE_URL}/evolution-chain/10/"},
        "evolves_from_species": species_resource("pichu", 172),
    }


@pytest.fixture
def pikachu_chain_payload() -> dict:
    return {
        "id": 10,
        "chain": chain_node("pichu", 172, [
            chain_node("pikachu", 25, [
                chain_node("raichu", 26),
            ]),
        ]),
    }


@pytest.fixture
def eevee_chain() -> dict:
    """Root node of a branching chain."""
    return chain_node("eevee", 133, [
        chain_node("vaporeon", 134),
        chain_node("jolteon", 135),
        chain_node("flareon", 136),
    ])


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StepClock:
    """Wall clock for favorites that ticks one second per reading."""

    def __init__(self):
        self.current = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


class FakePokeAPI:
    """In-memory stand-in for PokeAPIClient that counts calls.

    Set `gate` to an `asyncio.Event` to hold every call until it is set.
    """

    def __init__(self, total: int = 1154):
        self.total = total
        self.calls: Counter = Counter()
        self.details: dict[str, PokemonDetail] = {}
        self.species: dict[str, SpeciesRef] = {}
        self.chains: dict[int, dict] = {}
        self.failing_ids: set[int] = set()
        self.gate: Optional[asyncio.Event] = None

    def add_pokemon(self, payload: dict) -> PokemonDetail:
        detail = PokemonDetail.from_api(payload)
        self.details[detail.name] = detail
        return detail

    async def _enter(self, op: str, arg) -> None:
        self.calls[(op, arg)] += 1
        if self.gate is not None:
            await self.gate.wait()

    def count(self, op: str) -> int:
        return sum(n for (name, _), n in self.calls.items() if name == op)

    async def list_pokemon(self, offset: int = 0, limit: int = 20) -> ListPage:
        await self._enter("list", (offset, limit))
        end = min(offset + limit, self.total)
        return ListPage(
            count=self.total,
            results=[
                PokemonSummary(id=str(i), name=f"mon-{i}", resource_url=f"{BASE_URL}/pokemon/{i}/")
                for i in range(offset + 1, end + 1)
            ],
        )

    async def get_by_name(self, name: str) -> PokemonDetail:
        await self._enter("detail", name)
        if name not in self.details:
            raise NetworkError(f"PokeAPI returned 404 for pokemon/{name}", status_code=404)
        return self.details[name]

    async def get_by_id(self, pokemon_id: int) -> PokemonDetail:
        await self._enter("detail-id", pokemon_id)
        if pokemon_id in self.failing_ids:
            raise NetworkError("PokeAPI returned 503", status_code=503)
        for detail in self.details.values():
            if detail.id == pokemon_id:
                return detail
        raise NetworkError(f"PokeAPI returned 404 for pokemon/{pokemon_id}", status_code=404)

    async def get_species_by_name(self, name: str) -> SpeciesRef:
        await self._enter("species", name)
        if name not in self.species:
            raise NetworkError(f"PokeAPI returned 404 for pokemon-species/{name}", status_code=404)
        return self.species[name]

    async def get_evolution_chain_by_id(self, chain_id: int) -> dict:
        await self._enter("chain", chain_id)
        if chain_id not in self.chains:
            raise NetworkError(f"PokeAPI returned 404 for evolution-chain/{chain_id}", status_code=404)
        return self.chains[chain_id]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_api() -> FakePokeAPI:
    return FakePokeAPI()


@pytest.fixture
def test_config(tmp_path) -> Config:
    """Configuration rooted in a temporary directory with instant retries."""
    data_dir = tmp_path / "data"
    return Config(
        data_dir=data_dir,
        db_path=data_dir / "pokedex.db",
        keystore_dir=data_dir / "keystore",
        retry_delay=0,
    )


@pytest.fixture
def cache(fake_clock) -> QueryCache:
    return QueryCache(retries=1, retry_delay=0, clock=fake_clock)


@pytest_asyncio.fixture(params=["native", "web"])
async def store(request, test_config):
    """An initialized favorites store, once per backend."""
    if request.param == "native":
        backend = SQLiteFavoritesStore(test_config.db_path, now=StepClock())
    else:
        backend = KeyValueFavoritesStore(MemoryKeyValueStorage(), now=StepClock())
    await backend.init_database()
    yield backend
    await backend.close()


@pytest.fixture
def queries(fake_api, store, cache, test_config) -> PokedexQueries:
    """Facade over the fake API, once per favorites backend."""
    return PokedexQueries(fake_api, store, cache, test_config)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI runner for command tests."""
    return CliRunner()


@pytest.fixture
def isolated_config(tmp_path, monkeypatch) -> Config:
    """Point the global config at a temporary directory."""
    data_dir = tmp_path / "data"
    for attr, value in (
        ("data_dir", data_dir),
        ("db_path", data_dir / "pokedex.db"),
        ("keystore_dir", data_dir / "keystore"),
        ("retry_delay", 0),
    ):
        monkeypatch.setattr(config_module.config, attr, value)
    return config_module.config
