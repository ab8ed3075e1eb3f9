"""Application package: domain services, repositories and HTTP routes."""
