# Middleware package init
"""
mdnotes Backend - Middleware Package
======================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    The request ID is assigned first so the access log line can carry it;
    the log line is written once the response status is known.
"""
