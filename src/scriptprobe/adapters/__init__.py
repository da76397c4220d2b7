"""Adapters implementing the core ports and serving the endpoints."""
