"""PokeAPI client for fetching Pokemon data."""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from pokedex.core.errors import NetworkError
from pokedex.core.models import ListPage, PokemonDetail, PokemonSummary, SpeciesRef
from pokedex.utils.config import Config, config as default_config

logger = logging.getLogger(__name__)


class PokeAPIClient:
    """Read-only transport adapter for PokeAPI.

    Does no caching and no retries; every failure is raised as a
    `NetworkError` with the original exception chained as its cause.
    """

    def __init__(self, cfg: Optional[Config] = None, client: Optional[httpx.AsyncClient] = None):
        cfg = cfg or default_config
        self.base_url = cfg.pokeapi_base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(cfg.request_timeout, connect=cfg.connect_timeout),
            follow_redirects=True,
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
        )

    async def __aenter__(self) -> "PokeAPIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("PokeAPI HTTP client closed.")

    async def _get(self, path: str, params: Optional[dict] = None) -> dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug("GET %s params=%s", url, params)
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("PokeAPI returned %s for %s", status, url)
            raise NetworkError(f"PokeAPI returned {status} for {url}", status_code=status) from e
        except httpx.HTTPError as e:
            logger.warning("Request to %s failed: %s", url, e)
            raise NetworkError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            raise NetworkError(f"Invalid JSON from {url}", retryable=False) from e

        if not isinstance(data, dict):
            raise NetworkError(f"Expected a JSON object from {url}", retryable=False)
        return data

    async def list_pokemon(self, offset: int = 0, limit: int = 20) -> ListPage:
        """Fetch one page of the Pokemon list."""
        data = await self._get("pokemon", params={"offset": offset, "limit": limit})
        try:
            return ListPage(
                count=data["count"],
                results=[PokemonSummary.from_resource(r) for r in data.get("results", [])],
            )
        except (AttributeError, KeyError, TypeError, ValidationError) as e:
            raise NetworkError("Malformed Pokemon list payload", retryable=False) from e

    async def get_by_name(self, name: str) -> PokemonDetail:
        """Fetch Pokemon detail by name."""
        return await self._get_detail(name)

    async def get_by_id(self, pokemon_id: int) -> PokemonDetail:
        """Fetch Pokemon detail by National Pokedex id."""
        return await self._get_detail(str(pokemon_id))

    async def _get_detail(self, identifier: str) -> PokemonDetail:
        data = await self._get(f"pokemon/{identifier}")
        try:
            return PokemonDetail.from_api(data)
        except (AttributeError, KeyError, TypeError, ValidationError) as e:
            raise NetworkError(f"Malformed Pokemon payload for {identifier!r}", retryable=False) from e

    async def get_species_by_name(self, name: str) -> SpeciesRef:
        """Fetch Pokemon species data (for the evolution chain reference)."""
        data = await self._get(f"pokemon-species/{name}")
        try:
            return SpeciesRef.from_api(data)
        except (AttributeError, KeyError, TypeError, ValidationError) as e:
            raise NetworkError(f"Malformed species payload for {name!r}", retryable=False) from e

    async def get_evolution_chain_by_id(self, chain_id: int) -> dict[str, Any]:
        """Fetch an evolution chain and return its root node."""
        data = await self._get(f"evolution-chain/{chain_id}")
        chain = data.get("chain")
        if not isinstance(chain, dict):
            raise NetworkError(f"Evolution chain {chain_id} has no root node", retryable=False)
        return chain
