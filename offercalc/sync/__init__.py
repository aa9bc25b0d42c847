"""Booking sync: plan what would change, then replace bookings on confirmation."""
