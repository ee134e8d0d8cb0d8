"""
DarkMode Backend — Application Package
=======================================

What:  Multi-tenant SaaS API: accounts, session tokens, Stripe billing,
       document upload, usage accounting and analytics.
How:   Layered architecture.

    routes/      HTTP layer: parse requests, call services, shape responses
    services/    Business logic: usage limits, billing lifecycle, streaks, tokens
    models/      SQLAlchemy ORM tables
    schemas/     Pydantic request/response contracts
    middleware/  Cross-cutting request handling (request ID, logging, rate limit)

Each layer only imports from the layers below it. Services never touch
Request/Response objects; routes never build SQL.
"""

__version__ = "1.0.0"
