"""Offer pricing: rental factor curve, crew rate normalization, totals."""
