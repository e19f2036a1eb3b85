"""
School Admin Backend — HTTP Middleware Package
================================================

Starlette middlewares wrapping the whole app. Not to be confused with the
dispatch middlewares in ``school_admin.mws``, which run per handler.

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route

    Rate limiting runs first so rejected requests cost nothing; the request
    id is set before the access logger reads it.
"""
