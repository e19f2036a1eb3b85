"""
School Admin Backend — Application Package
============================================

What: Multi-tenant school administration API (schools, classrooms,
      students, users) served by FastAPI.

Architecture Note:
    Every business call goes through one generic dispatch engine:

    ┌─────────────────────────────────────┐
    │   /api/{module}/{fn}  (ApiHandler)  │  ← resolves module + exposed fn
    ├─────────────────────────────────────┤
    │   VirtualStack (middleware chain)   │  ← built from __special params
    ├─────────────────────────────────────┤
    │   Managers (entity handlers)        │  ← school, classroom, student, user
    ├─────────────────────────────────────┤
    │   DocumentStore (blocks table)      │  ← async SQLAlchemy
    └─────────────────────────────────────┘

    A handler asks for cross-cutting behaviour (token check, role guard)
    only by declaring a parameter such as ``__long_token``; there is no
    separate route table.
"""

__version__ = "1.0.0"
