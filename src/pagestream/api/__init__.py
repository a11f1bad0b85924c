"""API layer: export surface for accumulated query results.

No SQLAlchemy imports here; records come from a PaginatedStream.
"""
