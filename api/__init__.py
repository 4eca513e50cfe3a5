"""Read-only HTTP API over the seeded inventory database.

Run with `uvicorn api.main:app` from the project root.
"""
