"""
School Admin Backend — Routes
===============================

    health.py   GET /health
    api.py      /api/{module_name}/{fn_name}   (all business calls)
"""
