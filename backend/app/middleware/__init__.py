# Middleware package init
"""
DarkMode Backend — Middleware Package
=======================================

Middleware Chain (outermost first):
    Request → [CORS] → [Request ID] → [Logging] → [Rate Limit] → [GZip] → Route Handler

    CORS outermost so preflight and error responses carry CORS headers.
    Request ID before logging and rate limiting, so both can see the ID.
    Logging before rate limiting, so rejected requests are logged too.
"""
