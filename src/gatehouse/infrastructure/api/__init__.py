"""HTTP API layer: application factory, routes, schemas and dependencies."""
