"""Transactions — Create, Upsert and Delete as sync/write/commit/publish units."""
