"""TravelGuard: impossible travel detection for geolocated account access."""

__version__ = "0.1.0"
