"""Utility modules for the load engine."""
