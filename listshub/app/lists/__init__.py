"""Shared lists and their items."""
