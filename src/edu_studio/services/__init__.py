"""Service layer for authoring commands."""
