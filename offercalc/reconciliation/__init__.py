"""Offer vs. booking reconciliation."""
