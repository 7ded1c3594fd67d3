"""Identifier extraction from PokeAPI resource URLs."""

import re

from pokedex.core.errors import ParseError

POKEMON_URL_RE = re.compile(r"/pokemon/(\d+)/?$")
SPECIES_URL_RE = re.compile(r"/pokemon-species/(\d+)/?$")
EVOLUTION_CHAIN_URL_RE = re.compile(r"evolution-chain/(\d+)")


def extract_id(url: str, pattern: re.Pattern) -> int:
    """Return the positive integer id `pattern` captures from `url`.

    Raises:
        ParseError: if the URL is empty, doesn't match, or the id isn't positive.
    """
    match = pattern.search(url or "")
    if not match:
        raise ParseError(f"No id in resource URL: {url!r}")
    resource_id = int(match.group(1))
    if resource_id <= 0:
        raise ParseError(f"Non-positive id in resource URL: {url!r}")
    return resource_id


def _id_or_zero(url: str, pattern: re.Pattern) -> int:
    try:
        return extract_id(url, pattern)
    except ParseError:
        return 0


def pokemon_id_from_url(url: str) -> str:
    """Id of a `.../pokemon/{id}/` URL as a string, "" when missing."""
    resource_id = _id_or_zero(url, POKEMON_URL_RE)
    return str(resource_id) if resource_id else ""


def species_id_from_url(url: str) -> int:
    """Id of a `.../pokemon-species/{id}/` URL, 0 when missing."""
    return _id_or_zero(url, SPECIES_URL_RE)


def chain_id_from_url(url: str) -> int:
    """Id of a `.../evolution-chain/{id}` URL, 0 when missing."""
    return _id_or_zero(url, EVOLUTION_CHAIN_URL_RE)
