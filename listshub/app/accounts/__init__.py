"""User accounts, authentication and sessions."""
