"""FastAPI routers for the worker.

Routers are grouped by domain (notes, suggestions, engine, templates).
"""
