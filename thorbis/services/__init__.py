"""Services package — all business logic lives here, never in routers.

Files:
  entity.py      — runs LifecycleEngine decisions against stored entities
  references.py  — cross-entity checks (links must exist, no double booking)
  audit.py       — audit-trail listener for status changes
  cascade.py     — appointment completion completes the linked work order

Rule: routers call services, services ask the lifecycle engine for decisions
      and call repositories, repositories call the DB.
      No SQLAlchemy queries in routers. No FastAPI imports in services.
"""
