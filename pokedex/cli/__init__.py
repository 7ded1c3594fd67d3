"""Command line interface for Pokedex."""
