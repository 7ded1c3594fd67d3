"""Rich display components for the CLI."""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from pokedex.core.models import (
    EvolutionStep,
    FavoriteRecord,
    FavoriteStats,
    PokemonDetail,
    PokemonSummary,
)
from pokedex.utils.helpers import format_dex_number

console = Console()


TYPE_COLORS = {
    "normal": "white",
    "fire": "red",
    "water": "blue",
    "electric": "yellow",
    "grass": "green",
    "ice": "cyan",
    "fighting": "red",
    "poison": "magenta",
    "ground": "yellow",
    "flying": "cyan",
    "psychic": "magenta",
    "bug": "green",
    "rock": "yellow",
    "ghost": "magenta",
    "dragon": "blue",
    "dark": "white",
    "steel": "white",
    "fairy": "magenta",
}


def pretty_name(name: str) -> str:
    """`mr-mime` -> `Mr Mime`."""
    return name.replace("-", " ").title()


def format_type(type_name: str) -> str:
    color = TYPE_COLORS.get(type_name, "white")
    return f"[{color}]{type_name.capitalize()}[/{color}]"


def display_pokemon_list(pokemon: list[PokemonSummary], title: str = "Pokemon") -> None:
    """Display a list of summaries as a table."""
    if not pokemon:
        console.print("[dim]No Pokemon found.[/dim]")
        return

    table = Table(title=title, box=box.ROUNDED)
    table.add_column("#", style="dim", width=6)
    table.add_column("Name", style="bold")

    for p in pokemon:
        number = format_dex_number(int(p.id)) if p.id else "?"
        table.add_row(number, pretty_name(p.name))

    console.print(table)


def display_pokemon_detail(pokemon: PokemonDetail) -> None:
    """Display a Pokemon's detail card with its base stats."""
    types = " / ".join(format_type(t) for t in pokemon.type_names)
    abilities = ", ".join(pretty_name(a) for a in pokemon.ability_names)
    base_exp = pokemon.base_experience if pokemon.base_experience is not None else "?"

    content = f"""[bold]{pretty_name(pokemon.name)}[/bold] {pokemon.display_id}
Type: {types}
Abilities: {abilities or '-'}
Height: {pokemon.height_m:.1f} m | Weight: {pokemon.weight_kg:.1f} kg
Base XP: {base_exp}"""

    console.print(Panel(content, title="Pokemon Info", box=box.ROUNDED))

    if pokemon.stats:
        table = Table(box=box.SIMPLE, show_header=False)
        table.add_column("Stat", style="dim")
        table.add_column("Value", justify="right")
        table.add_column("Bar")
        for stat in pokemon.stats:
            bar = "#" * min(stat.base_value // 10, 25)
            table.add_row(pretty_name(stat.stat_name), str(stat.base_value), f"[green]{bar}[/green]")
        console.print(table)


def display_evolution(steps: list[EvolutionStep], name: str) -> None:
    """Display a flattened evolution chain."""
    if not steps:
        console.print(f"[dim]{pretty_name(name)} has no known evolutions.[/dim]")
        return

    table = Table(title=f"Evolution chain of {pretty_name(name)}", box=box.ROUNDED)
    table.add_column("#", style="dim", width=6)
    table.add_column("Name", style="bold")
    table.add_column("Min. level", justify="right")

    for step in steps:
        level = str(step.min_level) if step.min_level is not None else "-"
        table.add_row(format_dex_number(step.id), pretty_name(step.name), level)

    console.print(table)


def display_favorites(favorites: list[FavoriteRecord]) -> None:
    """Display favorites, most recent first."""
    if not favorites:
        console.print("[dim]No favorites yet.[/dim]")
        return

    table = Table(title="Favorites", box=box.ROUNDED)
    table.add_column("#", style="dim", width=6)
    table.add_column("Name", style="bold")
    table.add_column("Added", style="dim")

    for fav in favorites:
        table.add_row(format_dex_number(fav.id), pretty_name(fav.name), fav.created_at[:19].replace("T", " "))

    console.print(table)


def display_favorite_stats(stats: FavoriteStats) -> None:
    """Display aggregate stats over favorites."""
    content = f"""Favorites: [bold]{stats.count}[/bold]
Avg. base XP: {stats.avg_base_experience}
Avg. weight: {stats.avg_weight_kg} kg
Avg. height: {stats.avg_height_m} m"""
    console.print(Panel(content, title="Favorite Stats", box=box.ROUNDED))
