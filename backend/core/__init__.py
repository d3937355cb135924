"""Core infrastructure for the matchday ledger backend.

Configuration, logging, error taxonomy, async database manager and FastAPI
dependency helpers.
"""
