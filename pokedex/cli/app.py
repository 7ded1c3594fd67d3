"""Main CLI application for Pokedex."""

import logging
from typing import Optional

import typer
from rich.console import Console

from pokedex import __version__
from pokedex.cli.commands import favorites, pokemon
from pokedex.cli.session import state
from pokedex.utils.config import Platform

# Create main app
app = typer.Typer(
    name="pokedex",
    help="Pokedex - browse Pokemon and keep your favorites",
    no_args_is_help=True,
)

# Register sub-commands
app.add_typer(pokemon.app, name="pokemon", help="Browse Pokemon")
app.add_typer(favorites.app, name="fav", help="Favorite Pokemon")

console = Console()


@app.callback()
def main(
    platform: Optional[Platform] = typer.Option(
        None, "--platform", help="Favorites backend: native (SQLite) or web (key store)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log cache and HTTP activity"),
) -> None:
    """Pokedex - browse Pokemon and keep your favorites."""
    state.platform = platform
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )


# Direct commands (shortcuts)
@app.command("show")
def show_shortcut(name: str = typer.Argument(..., help="Pokemon name")) -> None:
    """Show Pokemon detail."""
    pokemon.show(name)


@app.command("favorites")
def favorites_shortcut() -> None:
    """List favorites."""
    favorites.list_favorites()


@app.command("version")
def show_version() -> None:
    """Show version information."""
    console.print(f"Pokedex v{__version__}")


if __name__ == "__main__":
    app()
