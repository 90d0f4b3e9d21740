"""Flask blueprints for the garden monitor HTTP API."""
