"""Xyte API client boundary."""
