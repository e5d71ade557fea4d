"""Legacy veterinary records importer (PDF reports -> Vetspire)."""

__version__ = "0.1.0"
