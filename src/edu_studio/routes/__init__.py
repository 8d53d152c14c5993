"""HTTP routes for the authoring surface."""
