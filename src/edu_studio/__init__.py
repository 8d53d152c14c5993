"""Workflow engine for educational content production."""
