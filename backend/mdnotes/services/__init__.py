# Services package init
"""
mdnotes Backend - Services Layer
==================================

Service Inventory:
    - NoteRepository:  note normalization, filtering, paging and CRUD
    - SessionStore:    opaque session tokens with expiry
    - MigrationRunner: ordered, once-only application of SQL migration files

Each service receives its engine or session factory explicitly; none of them
keeps module-level state.
"""
