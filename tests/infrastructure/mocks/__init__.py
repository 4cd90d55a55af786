"""Fake platform collaborators for tests."""
