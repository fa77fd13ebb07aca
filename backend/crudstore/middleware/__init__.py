# Middleware package init
"""
crudstore — Middleware Package
==============================

Middleware Chain:
    Request → [Request ID] → [Logging] → [CORS] → Route Handler

    1. Request ID: generate correlation ID for logs and error bodies
    2. Logging: log method, path, status and duration with that ID
    3. CORS: FastAPI's CORSMiddleware (handles preflight)
"""
