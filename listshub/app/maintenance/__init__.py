"""Operator maintenance tasks."""
