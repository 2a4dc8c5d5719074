"""Health-tourism booking core: packages, bookings, payments and reviews."""

__version__ = "1.0.0"
