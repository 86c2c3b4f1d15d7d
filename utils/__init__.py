"""Shared helpers: request-field validation and CLI rendering."""
