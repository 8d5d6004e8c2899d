"""
user_service tests

Covers the FastAPI application (`main.py`), the paginated query resolver
(`pagination.py`), the SQLAlchemy record store, the user service
(`users.py`) and bearer authentication (`auth.py`, `deps.py`).
"""
