"""Logging setup and run artifacts."""
