"""Persistence layer: SQLAlchemy models, sessions and repository queries."""
