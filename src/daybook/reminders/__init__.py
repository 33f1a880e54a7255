"""Reminder policy, idempotency, delivery and the dispatch scheduler."""
