"""HTTP API for route quotes."""
