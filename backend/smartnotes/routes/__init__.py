"""
SmartNotes Backend — API Routes Package
=========================================

Route Inventory:
    - notes.py:      /api/notes ...            (CRUD, edit mode, summarize)
    - summarize.py:  POST /api/summarize       (standalone text summary)
    - identity.py:   GET  /api/me              (current identity)
    - health.py:     GET  /health              (service health check)
    - deps.py:       shared dependencies (identity, lifecycle manager)

Routes stay thin: extract identity and body, call the lifecycle manager,
return the response model. Business rules live in services.
"""
