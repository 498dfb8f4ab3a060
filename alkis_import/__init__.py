"""Database preparation and reconciliation wrapper around the ALKIS importer."""

__version__ = "0.1.0"
