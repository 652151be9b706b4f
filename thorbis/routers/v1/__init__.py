"""v1 router package — all /api/v1/* endpoints live here.

Files:
  lifecycles.py  — declared statuses / transitions and a transition dry run
  entities.py    — CRUD + guarded mutations + summaries for every entity type

Rule: Routers only handle HTTP (request parsing, response shaping).
      All business logic delegates to thorbis/services/ and thorbis/lifecycle/.
"""
