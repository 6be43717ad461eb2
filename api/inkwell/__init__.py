"""Inkwell engagement API."""
