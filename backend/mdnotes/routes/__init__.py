# Routes package init
"""
mdnotes Backend - API Routes Package
======================================

Route Inventory:
    - auth.py:    POST /auth/login, POST /auth/logout, GET /auth/session
    - notes.py:   GET/POST /notes, GET/PUT/DELETE /notes/{id},
                  POST /notes/{id}/favorite           (session required)
    - health.py:  GET /health

Routes stay thin: parse input, call a service, shape the response.
"""
