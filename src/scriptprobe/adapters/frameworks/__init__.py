"""Web framework adapters (generic ASGI and FastAPI)."""
