"""Reviewer assignment engine: suggests and assigns code reviewers for change requests."""

__version__ = "0.1.0"
