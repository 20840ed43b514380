"""Booking chat agent for the MedNotes clinic app."""

__version__ = "0.1.0"
