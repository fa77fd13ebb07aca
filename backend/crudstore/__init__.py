"""
crudstore — Package Initializer
===============================

What: Marks the `crudstore` directory as a Python package.
Who:  Used implicitly by Python's import system and explicitly by pytest and uvicorn.

Architecture Note:
    The package is split into two layers:

    ┌─────────────────────────────────────┐
    │        Routes (HTTP Layer)          │  ← verb/path → store call, status codes
    ├─────────────────────────────────────┤
    │     Services (EntityStore core)     │  ← id assignment, CRUD, JSON file sync
    └─────────────────────────────────────┘

    Routes never touch the collection files. Stores never know about HTTP.
    Each store is constructed by the application factory and handed to its
    router, so there is no process-wide store instance.
"""

__version__ = "1.0.0"
