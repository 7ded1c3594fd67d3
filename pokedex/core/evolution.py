"""Evolution chain resolution and flattening."""

import logging
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from pokedex.core.errors import PokedexError
from pokedex.core.models import EvolutionStep, SpeciesRef
from pokedex.core.resources import chain_id_from_url, species_id_from_url

if TYPE_CHECKING:
    from pokedex.data.pokeapi import PokeAPIClient
    from pokedex.data.query_cache import QueryCache

logger = logging.getLogger(__name__)


def flatten_chain(root: Optional[dict[str, Any]]) -> list[EvolutionStep]:
    """Flatten an evolution tree into steps, in pre-order.

    A node comes before its children and siblings keep their source order,
    so `A -> [B, C], B -> [D]` yields `[A, B, D, C]`. Nodes without a valid
    species id or name are dropped; their descendants are still visited.
    """
    if not root:
        return []

    steps: list[EvolutionStep] = []
    stack = [root]
    while stack:
        node = stack.pop()
        species = node.get("species") or {}
        name = species.get("name") or ""
        step_id = species_id_from_url(species.get("url", ""))

        details = node.get("evolution_details") or []
        min_level = details[0].get("min_level") if details and details[0] else None

        if step_id > 0 and name:
            steps.append(EvolutionStep(id=step_id, name=name, min_level=min_level))
        else:
            logger.debug("Skipping evolution node without species id: %r", species)

        # Reversed so the first child is popped next
        stack.extend(reversed(node.get("evolves_to") or []))
    return steps


class EvolutionResult(BaseModel):
    """Union of the three resolution stages."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    steps: list[EvolutionStep] = Field(default_factory=list)
    is_loading: bool = False
    error: Optional[Exception] = None


class EvolutionChainResolver:
    """Resolve name -> species -> evolution chain -> flattened steps.

    Each stage is its own cache entry and only runs once the previous stage
    produced its input.
    """

    def __init__(self, api: "PokeAPIClient", cache: "QueryCache", stale_time: float = 600):
        self.api = api
        self.cache = cache
        self.stale_time = stale_time

    @staticmethod
    def species_key(name: str) -> tuple:
        return ("species", name)

    @staticmethod
    def chain_key(chain_id: int) -> tuple:
        return ("evo-chain", chain_id)

    @staticmethod
    def steps_key(chain_id: int) -> tuple:
        return ("evo-chain", chain_id, "steps")

    async def get_species(self, name: str) -> SpeciesRef:
        return await self.cache.fetch(
            self.species_key(name), lambda: self.api.get_species_by_name(name), self.stale_time
        )

    async def get_chain(self, chain_id: int) -> dict[str, Any]:
        return await self.cache.fetch(
            self.chain_key(chain_id),
            lambda: self.api.get_evolution_chain_by_id(chain_id),
            self.stale_time,
        )

    async def get_steps(self, chain_id: int) -> list[EvolutionStep]:
        async def load() -> list[EvolutionStep]:
            return flatten_chain(await self.get_chain(chain_id))

        return await self.cache.fetch(self.steps_key(chain_id), load, self.stale_time)

    async def resolve(self, name: str) -> EvolutionResult:
        """Run all stages for `name`; failures are reported, not raised."""
        if not name:
            return EvolutionResult()
        try:
            species = await self.get_species(name)
            chain_id = chain_id_from_url(species.evolution_chain_url)
            if not chain_id:
                logger.info("Species %s has no usable evolution chain URL", name)
                return EvolutionResult()
            steps = await self.get_steps(chain_id)
        except PokedexError as e:
            return EvolutionResult(error=e)
        return EvolutionResult(steps=steps)

    def status(self, name: str) -> EvolutionResult:
        """Current state of all stages for `name` without fetching."""
        species_state = self.cache.snapshot(self.species_key(name))
        is_loading = species_state.is_loading
        error = species_state.error
        steps: list[EvolutionStep] = []

        if species_state.data is not None:
            chain_id = chain_id_from_url(species_state.data.evolution_chain_url)
            if chain_id:
                chain_state = self.cache.snapshot(self.chain_key(chain_id))
                steps_state = self.cache.snapshot(self.steps_key(chain_id))
                is_loading = is_loading or chain_state.is_loading or steps_state.is_loading
                error = error or chain_state.error or steps_state.error
                steps = steps_state.data or []

        return EvolutionResult(steps=steps, is_loading=is_loading, error=error)
