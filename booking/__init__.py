"""Appointment booking: business calendar, slot availability and appointment ledger."""

__version__ = "1.0.0"
