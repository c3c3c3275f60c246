"""
mdnotes Backend - Application Package
=======================================

What: Password-gated personal markdown notes service.
Who:  Imported by uvicorn (`mdnotes.main:create_app`), `python -m mdnotes`
      and pytest.

Layers:
    ┌─────────────────────────────────────┐
    │     Routes (auth, notes, health)    │  ← HTTP parsing, status codes
    ├─────────────────────────────────────┤
    │ Services (notes, sessions, migrate) │  ← normalization, storage calls
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │      Database (engine, sessions)    │  ← Async SQLAlchemy
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
