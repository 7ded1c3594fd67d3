"""Pokemon browsing CLI commands."""

import typer

from pokedex.cli.session import run
from pokedex.cli.ui.displays import (
    console,
    display_evolution,
    display_pokemon_detail,
    display_pokemon_list,
)
from pokedex.core.models import filter_by_name

app = typer.Typer(help="Pokemon browsing commands")


@app.command("list")
def list_pokemon(
    limit: int = typer.Option(20, "--limit", "-l", min=1, help="Pokemon per page"),
    offset: int = typer.Option(0, "--offset", "-o", min=0, help="Index of the first Pokemon"),
) -> None:
    """List one page of Pokemon."""
    summaries = run(lambda pokedex: pokedex.get_list(limit, offset))
    display_pokemon_list(summaries, f"Pokemon {offset + 1}-{offset + len(summaries)}")


@app.command("browse")
def browse(
    page_size: int = typer.Option(50, "--page-size", "-s", min=1, help="Pokemon per page"),
    pages: int = typer.Option(1, "--pages", "-p", min=1, help="Pages to load"),
    search: str = typer.Option("", "--search", "-q", help="Filter loaded Pokemon by name"),
) -> None:
    """Load pages of the Pokedex and optionally search them."""

    async def work(pokedex):
        query = await pokedex.get_infinite_list(page_size)
        while len(query.pages) < pages and query.has_next_page:
            await query.fetch_next_page()
        return query.items, query.pages[-1].count, query.has_next_page

    items, total, has_more = run(work)
    shown = filter_by_name(items, search)
    title = f"Pokedex ({len(items)}/{total} loaded)"
    if search:
        title += f" matching '{search}'"
    display_pokemon_list(shown, title)
    if has_more:
        console.print(f"[dim]Use --pages {pages + 1} to load more.[/dim]")


@app.command("show")
def show(name: str = typer.Argument(..., help="Pokemon name")) -> None:
    """Show Pokemon detail and its evolution chain."""

    async def work(pokedex):
        detail = await pokedex.get_detail_by_name(name)
        evolution = await pokedex.get_evolution_chain(name)
        is_favorite = await pokedex.get_is_favorite(detail.id)
        return detail, evolution, is_favorite

    detail, evolution, is_favorite = run(work)
    display_pokemon_detail(detail)
    if is_favorite:
        console.print("[yellow]* In your favorites[/yellow]")
    if evolution.error:
        console.print(f"[yellow]Evolution chain unavailable: {evolution.error}[/yellow]")
    else:
        display_evolution(evolution.steps, detail.name)


@app.command("evolution")
def evolution(name: str = typer.Argument(..., help="Pokemon name")) -> None:
    """Show the evolution chain of a Pokemon."""
    result = run(lambda pokedex: pokedex.get_evolution_chain(name))
    if result.error:
        console.print(f"[red]Error: {result.error}[/red]")
        raise typer.Exit(1)
    display_evolution(result.steps, name)
