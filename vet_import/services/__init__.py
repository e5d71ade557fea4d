"""Transformation, matching and reconciliation services."""
