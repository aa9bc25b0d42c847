"""offercalc - offer pricing and booking reconciliation for job bookings."""

__version__ = "0.1.0"
