"""CSV event upload importer (CSV -> PostgreSQL)."""

__version__ = "0.1.0"
