"""Tests for the CLI commands."""

import httpx
import pytest
import respx

from pokedex import __version__
from pokedex.cli.app import app

from tests.conftest import BASE_URL, pokemon_payload


@pytest.fixture
def mock_api(isolated_config):
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as mock:
        yield mock


def list_response(request):
    """Serve a 5-entry Pokedex honoring offset and limit."""
    names = ["pikachu", "raichu", "sandshrew", "sandslash", "nidoran-f"]
    offset = int(request.url.params.get("offset", 0))
    limit = int(request.url.params.get("limit", 20))
    return httpx.Response(200, json={
        "count": len(names),
        "results": [
            {"name": name, "url": f"{BASE_URL}/pokemon/{25 + i}/"}
            for i, name in enumerate(names)
        ][offset:offset + limit],
    })


class TestRootCommands:
    def test_version(self, cli_runner):
        result = cli_runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestFavoritesCommands:
    """Tests for the fav sub-commands."""

    def test_empty_list(self, cli_runner, isolated_config):
        result = cli_runner.invoke(app, ["fav", "list"])
        assert result.exit_code == 0
        assert "No favorites yet" in result.stdout

    def test_add_list_remove(self, cli_runner, isolated_config):
        added = cli_runner.invoke(app, ["fav", "add", "25", "Pikachu"])
        assert added.exit_code == 0
        assert "Pikachu is a favorite" in added.stdout

        listed = cli_runner.invoke(app, ["fav", "list"])
        assert listed.exit_code == 0
        assert "Pikachu" in listed.stdout
        assert "#025" in listed.stdout

        removed = cli_runner.invoke(app, ["fav", "remove", "25"])
        assert removed.exit_code == 0
        assert "No favorites yet" in cli_runner.invoke(app, ["fav", "list"]).stdout

    def test_add_twice_keeps_one(self, cli_runner, isolated_config):
        cli_runner.invoke(app, ["fav", "add", "25", "pikachu"])
        cli_runner.invoke(app, ["fav", "add", "25", "pikachu"])

        listed = cli_runner.invoke(app, ["favorites"])
        assert listed.stdout.count("Pikachu") == 1

    def test_toggle(self, cli_runner, isolated_config):
        first = cli_runner.invoke(app, ["fav", "toggle", "133", "eevee"])
        second = cli_runner.invoke(app, ["fav", "toggle", "133", "eevee"])

        assert "added to" in first.stdout
        assert "removed from" in second.stdout

    def test_web_platform_uses_key_store(self, cli_runner, isolated_config):
        result = cli_runner.invoke(app, ["--platform", "web", "fav", "add", "1", "bulbasaur"])
        assert result.exit_code == 0

        assert (isolated_config.keystore_dir / "pokedex_favorites.json").exists()
        assert "Bulbasaur" in cli_runner.invoke(app, ["--platform", "web", "fav", "list"]).stdout
        assert "No favorites yet" in cli_runner.invoke(app, ["--platform", "native", "fav", "list"]).stdout

    def test_stats_without_favorites(self, cli_runner, isolated_config):
        result = cli_runner.invoke(app, ["fav", "stats"])
        assert result.exit_code == 0
        assert "Favorites: 0" in result.stdout

    def test_stats(self, cli_runner, mock_api):
        mock_api.get("/pokemon/1").mock(return_value=httpx.Response(
            200, json=pokemon_payload(1, "bulbasaur", base_experience=64, weight=69, height=7)
        ))
        cli_runner.invoke(app, ["fav", "add", "1", "bulbasaur"])

        result = cli_runner.invoke(app, ["fav", "stats"])

        assert result.exit_code == 0
        assert "Favorites: 1" in result.stdout
        assert "64.0" in result.stdout
        assert "6.9 kg" in result.stdout


class TestPokemonCommands:
    """Tests for the pokemon sub-commands."""

    def test_list(self, cli_runner, mock_api):
        mock_api.get("/pokemon").mock(side_effect=list_response)

        result = cli_runner.invoke(app, ["pokemon", "list", "--limit", "2"])

        assert result.exit_code == 0
        assert "Pikachu" in result.stdout
        assert "Raichu" in result.stdout
        assert "Sandshrew" not in result.stdout

    def test_browse_with_search(self, cli_runner, mock_api):
        route = mock_api.get("/pokemon").mock(side_effect=list_response)

        result = cli_runner.invoke(
            app, ["pokemon", "browse", "--page-size", "2", "--pages", "2", "--search", "sand"]
        )

        assert result.exit_code == 0
        assert "Sandshrew" in result.stdout
        assert "Pikachu" not in result.stdout
        assert "4/5 loaded" in result.stdout
        assert route.call_count == 2

    def test_show(self, cli_runner, mock_api, pikachu_payload, pikachu_species_payload, pikachu_chain_payload):
        mock_api.get("/pokemon/pikachu").mock(return_value=httpx.Response(200, json=pikachu_payload))
        mock_api.get("/pokemon-species/pikachu").mock(
            return_value=httpx.Response(200, json=pikachu_species_payload)
        )
        mock_api.get("/evolution-chain/10").mock(
            return_value=httpx.Response(200, json=pikachu_chain_payload)
        )

        result = cli_runner.invoke(app, ["show", "Pikachu"])

        assert result.exit_code == 0
        assert "#025" in result.stdout
        assert "Electric" in result.stdout
        assert "Pichu" in result.stdout
        assert "Raichu" in result.stdout

    def test_show_not_found(self, cli_runner, mock_api):
        mock_api.get("/pokemon/missingno").mock(return_value=httpx.Response(404))

        result = cli_runner.invoke(app, ["show", "missingno"])

        assert result.exit_code == 1
        assert "Not found" in result.stdout

    def test_network_failure_exits_nonzero(self, cli_runner, mock_api):
        route = mock_api.get("/pokemon").mock(side_effect=httpx.ConnectError("offline"))

        result = cli_runner.invoke(app, ["pokemon", "list"])

        assert result.exit_code == 1
        assert "Error" in result.stdout
        assert route.call_count == 2

    def test_evolution_error(self, cli_runner, mock_api):
        mock_api.get("/pokemon-species/missingno").mock(return_value=httpx.Response(404))

        result = cli_runner.invoke(app, ["pokemon", "evolution", "missingno"])

        assert result.exit_code == 1
