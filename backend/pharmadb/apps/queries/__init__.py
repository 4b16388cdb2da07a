"""Read-only query projections over the catalog and sale ledger."""
