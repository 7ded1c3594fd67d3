"""Pokedex reads and the favorite toggle, routed through the query cache."""

import asyncio
import logging
from typing import Optional

from pokedex.core.errors import NotFoundError
from pokedex.core.evolution import EvolutionChainResolver, EvolutionResult
from pokedex.core.models import (
    FavoriteRecord,
    FavoriteStats,
    InfinitePage,
    PokemonDetail,
    PokemonSummary,
    ToggleFavoriteVars,
)
from pokedex.data.favorites import FavoritesStore
from pokedex.data.pokeapi import PokeAPIClient
from pokedex.data.query_cache import InfiniteQuery, Mutation, QueryCache, QueryResult, settle
from pokedex.utils.config import Config, config as default_config
from pokedex.utils.helpers import average, normalize_name

logger = logging.getLogger(__name__)

FAVORITES_KEY = ("favorites",)
FAVORITE_STATS_KEY = ("favorite-stats",)


def list_key(limit: int, offset: int) -> tuple:
    return ("pokemon-list", limit, offset)


def infinite_key(page_size: int) -> tuple:
    return ("pokemon-infinite", page_size)


def detail_key(name: str) -> tuple:
    return ("pokemon", name)


def detail_by_id_key(pokemon_id: int) -> tuple:
    return ("pokemon-id", pokemon_id)


def is_favorite_key(pokemon_id: int) -> tuple:
    return ("is-favorite", pokemon_id)


class PokedexQueries:
    """Single entry point for every remote and local read.

    Names are stripped and lower-cased here before they become cache keys;
    the cache itself compares keys verbatim.
    """

    def __init__(
        self,
        api: PokeAPIClient,
        store: FavoritesStore,
        cache: QueryCache,
        cfg: Optional[Config] = None,
    ):
        self.api = api
        self.store = store
        self.cache = cache
        self.config = cfg or default_config
        self.evolution = EvolutionChainResolver(api, cache, self.config.evolution_stale_time)
        self._infinite: dict[int, InfiniteQuery] = {}
        self._store_lock = asyncio.Lock()
        self.toggle_mutation = Mutation(self._write_favorite, self._after_toggle)

    # Pokemon list

    async def get_list(self, limit: int = 20, offset: int = 0) -> list[PokemonSummary]:
        """Fetch a single page of summaries."""

        async def load() -> list[PokemonSummary]:
            page = await self.api.list_pokemon(offset, limit)
            return page.results

        return await self.cache.fetch(list_key(limit, offset), load, self.config.list_stale_time)

    async def _fetch_infinite_page(self, page_size: int, offset: int) -> InfinitePage:
        page = await self.api.list_pokemon(offset, page_size)
        next_offset = offset + page_size
        return InfinitePage(
            items=page.results,
            count=page.count,
            offset=offset,
            next_offset=next_offset if next_offset < page.count else None,
        )

    async def get_infinite_list(self, page_size: Optional[int] = None) -> InfiniteQuery:
        """Return the shared infinite list for `page_size` with its first page loaded."""
        page_size = page_size or self.config.default_page_size
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        query = self._infinite.get(page_size)
        if query is None:
            query = InfiniteQuery(
                self.cache,
                infinite_key(page_size),
                lambda offset: self._fetch_infinite_page(page_size, offset),
                initial_param=0,
                stale_time=self.config.list_stale_time,
            )
            self._infinite[page_size] = query
        await query.fetch_first_page()
        return query

    # Pokemon detail

    async def get_detail_by_name(self, name: str) -> PokemonDetail:
        """Fetch detail for `name`.

        Raises:
            NotFoundError: the name doesn't resolve remotely.
            NetworkError: the provider could not be reached.
        """
        name = normalize_name(name)
        if not name:
            raise NotFoundError("No Pokemon name given")
        return await self.cache.fetch(
            detail_key(name), lambda: self.api.get_by_name(name), self.config.detail_stale_time
        )

    async def get_detail_by_id(self, pokemon_id: int) -> PokemonDetail:
        return await self.cache.fetch(
            detail_by_id_key(pokemon_id),
            lambda: self.api.get_by_id(pokemon_id),
            self.config.detail_stale_time,
        )

    async def observe_detail_by_name(self, name: str) -> QueryResult:
        name = normalize_name(name)
        if not name:
            # Disabled query: nothing to load
            return QueryResult()
        return await self.cache.observe(
            detail_key(name), lambda: self.api.get_by_name(name), self.config.detail_stale_time
        )

    async def get_evolution_chain(self, name: str) -> EvolutionResult:
        return await self.evolution.resolve(normalize_name(name))

    # Favorites

    async def get_favorites(self) -> list[FavoriteRecord]:
        return await self.cache.fetch(
            FAVORITES_KEY, self.store.get_all_favorites, self.config.favorites_stale_time
        )

    async def observe_favorites(self) -> QueryResult:
        return await self.cache.observe(
            FAVORITES_KEY, self.store.get_all_favorites, self.config.favorites_stale_time
        )

    async def get_is_favorite(self, pokemon_id: int) -> bool:
        return await self.cache.fetch(
            is_favorite_key(pokemon_id),
            lambda: self.store.is_favorite(pokemon_id),
            self.config.favorites_stale_time,
        )

    async def _write_favorite(self, variables: ToggleFavoriteVars) -> None:
        async with self._store_lock:
            if variables.is_currently_favorite:
                logger.info("Removing favorite %s (#%d)", variables.name, variables.id)
                await self.store.remove_favorite(variables.id)
            else:
                logger.info("Adding favorite %s (#%d)", variables.name, variables.id)
                await self.store.add_favorite(variables.id, variables.name, variables.image_url)

    def _after_toggle(self, _result: None, variables: ToggleFavoriteVars) -> None:
        self.cache.invalidate(FAVORITES_KEY)
        self.cache.invalidate(is_favorite_key(variables.id))
        self.cache.invalidate(FAVORITE_STATS_KEY)

    async def toggle_favorite(self, variables: ToggleFavoriteVars) -> None:
        """Add or remove a favorite, then invalidate the favorites queries.

        Raises:
            StorageError: the store could not persist the change.
        """
        await self.toggle_mutation.mutate(variables)

    async def get_favorite_stats(self) -> FavoriteStats:
        return await self.cache.fetch(
            FAVORITE_STATS_KEY, self._compute_favorite_stats, self.config.favorites_stale_time
        )

    async def _compute_favorite_stats(self) -> FavoriteStats:
        favorites = await self.get_favorites()
        subset = favorites[:self.config.stats_detail_cap]
        outcomes = await settle(self.get_detail_by_id(f.id) for f in subset)

        details: list[PokemonDetail] = []
        for favorite, outcome in zip(subset, outcomes):
            if outcome.ok:
                details.append(outcome.value)
            else:
                logger.warning("Stats skip favorite #%d: %s", favorite.id, outcome.error)

        return FavoriteStats(
            count=len(favorites),
            avg_base_experience=average([d.base_experience or 0 for d in details]),
            avg_weight_kg=average([d.weight_kg for d in details]),
            avg_height_m=average([d.height_m for d in details]),
        )
