"""Infrastructure layer: persistence, auth, outbound services and the HTTP API."""
