"""Control core for an unattended beverage-dispensing machine."""

__version__ = "0.1.0"
