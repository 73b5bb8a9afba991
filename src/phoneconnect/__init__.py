"""PhoneConnect desktop client: dial through a paired Android phone."""

__version__ = "0.3.0"
