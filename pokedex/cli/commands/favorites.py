"""Favorites CLI commands."""

from typing import Optional

import typer

from pokedex.cli.session import run
from pokedex.cli.ui.displays import (
    console,
    display_favorite_stats,
    display_favorites,
    pretty_name,
)
from pokedex.core.models import ToggleFavoriteVars
from pokedex.utils.helpers import normalize_name, sprite_url

app = typer.Typer(help="Favorite Pokemon")


def _toggle(pokemon_id: int, name: str, image_url: Optional[str], want_favorite: Optional[bool]) -> bool:
    """Toggle (or force) favorite state; returns the new state."""

    async def work(pokedex) -> bool:
        current = await pokedex.get_is_favorite(pokemon_id)
        if want_favorite is not None and current == want_favorite:
            return current
        await pokedex.toggle_favorite(ToggleFavoriteVars(
            id=pokemon_id,
            name=normalize_name(name),
            image_url=image_url or sprite_url(pokemon_id),
            is_currently_favorite=current,
        ))
        return await pokedex.get_is_favorite(pokemon_id)

    return run(work)


@app.command("add")
def add(
    pokemon_id: int = typer.Argument(..., min=1, help="National Pokedex number"),
    name: str = typer.Argument(..., help="Pokemon name"),
    image_url: Optional[str] = typer.Option(None, "--image", help="Image URL (defaults to sprite)"),
) -> None:
    """Add a Pokemon to favorites."""
    _toggle(pokemon_id, name, image_url, want_favorite=True)
    console.print(f"[green]+ {pretty_name(name)} is a favorite[/green]")


@app.command("remove")
def remove(
    pokemon_id: int = typer.Argument(..., min=1, help="National Pokedex number"),
) -> None:
    """Remove a Pokemon from favorites."""
    _toggle(pokemon_id, "", None, want_favorite=False)
    console.print(f"[green]- #{pokemon_id} removed from favorites[/green]")


@app.command("toggle")
def toggle(
    pokemon_id: int = typer.Argument(..., min=1, help="National Pokedex number"),
    name: str = typer.Argument(..., help="Pokemon name"),
) -> None:
    """Flip the favorite state of a Pokemon."""
    now_favorite = _toggle(pokemon_id, name, None, want_favorite=None)
    state = "added to" if now_favorite else "removed from"
    console.print(f"[green]{pretty_name(name)} {state} favorites[/green]")


@app.command("list")
def list_favorites() -> None:
    """List favorites, most recent first."""
    display_favorites(run(lambda pokedex: pokedex.get_favorites()))


@app.command("stats")
def stats() -> None:
    """Show averages over your most recent favorites."""
    display_favorite_stats(run(lambda pokedex: pokedex.get_favorite_stats()))
