"""
docapi — Application Package Initializer
=========================================

What: Marks the `docapi` directory as a Python package.
Who:  Used by uvicorn (`docapi.main:app`), Alembic, and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │     Routes (URL → handler wiring)   │
    ├─────────────────────────────────────┤
    │  Handlers (CRUD factory, account)   │  ← HTTP envelope, status codes
    ├─────────────────────────────────────┤
    │  Services (collection, query filter,│  ← data-layer contract, images
    │            image processing)        │
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Handlers only ever talk to an `EntityModel`; they do not know which
    SQLAlchemy entity sits behind it.
"""

__version__ = "1.0.0"
