"""Permission-aware category access control and search for a hosted forum."""

__version__ = "0.1.0"
