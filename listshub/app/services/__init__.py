"""Wiring of services to their PostgreSQL repositories."""
