"""Domain models, errors and evolution chain resolution."""
