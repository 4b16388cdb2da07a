"""Feature apps: catalog, sales, queries, audit."""
