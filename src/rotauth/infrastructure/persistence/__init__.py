"""Persistence layer: database manager, models, repositories and the token store."""
