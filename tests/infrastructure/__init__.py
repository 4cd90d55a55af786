"""Shared test infrastructure: fakes and helpers."""
