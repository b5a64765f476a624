# Middleware package init
"""
CloudMart Functions — Middleware Package
=========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request Context] → [CORS] → Route Handler

    Request Context assigns the request ID (X-Request-ID), makes it
    available to every log record of the request, and writes one access
    log line with status and duration when the response is produced.
"""
