"""Remote client, favorites storage and the query cache."""
