"""Process-lifetime wiring of the client, the favorites store and the cache."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from pokedex.data.favorites import KeyValueStorage, create_favorites_store
from pokedex.data.pokeapi import PokeAPIClient
from pokedex.data.queries import PokedexQueries
from pokedex.data.query_cache import QueryCache
from pokedex.utils.config import Config, Platform, config as default_config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_pokedex(
    cfg: Optional[Config] = None,
    platform: Optional[Platform] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    storage: Optional[KeyValueStorage] = None,
) -> AsyncIterator[PokedexQueries]:
    """Create every data-layer object once and release them on exit.

    The favorites store is initialized before the queries are handed out.
    """
    cfg = cfg or default_config
    platform = platform or cfg.platform
    logger.info("Opening Pokedex session (platform=%s)", platform.value)

    store = create_favorites_store(platform, cfg, storage=storage)
    await store.init_database()
    cache = QueryCache.from_config(cfg)
    api = PokeAPIClient(cfg, client=http_client)
    try:
        yield PokedexQueries(api, store, cache, cfg)
        await cache.wait_idle()
    finally:
        await api.aclose()
        await store.close()
        logger.info("Pokedex session closed.")
