"""HTTP API for Geata (FastAPI)."""
