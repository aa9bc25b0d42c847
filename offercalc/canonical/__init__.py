"""Canonical reconciliation keys."""
