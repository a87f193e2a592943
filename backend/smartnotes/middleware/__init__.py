"""
SmartNotes Backend — Middleware Package
========================================

Middleware Chain:
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    Request ID runs first so the access log line and the error handlers of
    the same request share the correlation id.
"""
