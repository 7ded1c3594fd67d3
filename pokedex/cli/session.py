"""Running async data-layer work from synchronous CLI commands."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import typer

from pokedex.cli.ui.displays import console
from pokedex.core.errors import NotFoundError, PokedexError
from pokedex.data.queries import PokedexQueries
from pokedex.data.session import open_pokedex
from pokedex.utils.config import Platform

logger = logging.getLogger(__name__)


class CliState:
    """Options set by the root callback."""

    platform: Optional[Platform] = None


state = CliState()


def run(work: Callable[[PokedexQueries], Awaitable[Any]]) -> Any:
    """Open a session, run `work` in it and map failures to exit code 1."""

    async def main() -> Any:
        async with open_pokedex(platform=state.platform) as pokedex:
            return await work(pokedex)

    try:
        return asyncio.run(main())
    except NotFoundError as e:
        console.print(f"[red]Not found: {e.message}[/red]")
        raise typer.Exit(1)
    except PokedexError as e:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)
