"""
Dispatch engine: one endpoint, middleware chains derived from handler
parameter names, one response envelope.

    params.py       → Parameter Introspector
    registry.py     → Middleware Registry
    stack.py        → Dispatch Stack Builder + Executor (VirtualStack)
    api_handler.py  → Route Resolver (ApiHandler)
    responses.py    → Response Dispatcher
    context.py      → RequestContext
"""
