"""FastAPI integration for docgate."""
