"""Tests for Pokedex."""
