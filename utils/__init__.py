"""Shared helpers and the batch pipeline runner."""
