"""
Synapse — Festival Site Backend
================================
Runs the public pages, attendee dashboard, admin console and gate
scanner for the Synapse college festival.  Everything is stored as JSON
documents in one PostgreSQL table; admin writes are audit-logged.

Package layout::

    synapse/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Collections, permissions, route map, form options
    ├── schemas.py         # Pydantic documents and forms
    ├── manage.py          # Operator CLI (init-db, grant, revoke)
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + init_db
    │   ├── models.py      # documents, admin_log, oauth state, rate-limit events
    │   ├── store.py       # Document store (get / list / add / set / transaction)
    │   └── seed.py        # Default page visibility and day passes
    ├── services/          # One module per collection; return ServiceResult
    └── api/
        ├── main.py        # FastAPI app
        ├── auth.py        # Google OAuth → session → JWT
        ├── deps.py        # Guards, store injection, response helpers
        ├── rate_limit.py  # Per-admin write limiter
        └── routes/        # Public, dashboard, management and scanner endpoints
"""

__version__ = "1.0.0"
