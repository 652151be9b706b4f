"""HTTP layer. Versioned routers live in ``v1/``; ``/health`` is on the app itself."""
