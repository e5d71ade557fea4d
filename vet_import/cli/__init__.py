"""Command line interface (``python -m vet_import.cli``)."""
