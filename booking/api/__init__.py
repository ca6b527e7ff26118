"""HTTP API for the booking system."""
from booking.api.app import create_app

__all__ = ["create_app"]
