# Services package init
"""
DarkMode Backend — Services Layer
===================================

What:  Business rules between the routes (HTTP) and the models (persistence).
How:   Each service is a class with its collaborators passed to __init__ and
       a module-level singleton built from `settings`. Tests construct their
       own instances with fakes.

Service Inventory:
    - plans:                PlanCatalog, immutable plan limits
    - security:             password hashing, signed access tokens
    - token_service:        refresh token issue / rotate / revoke
    - auth_service:         registration, login, password and email flows
    - usage_service:        limit checks, session creation and completion
    - analytics_service:    totals, streak, statistics, leaderboard
    - session_service:      session read / update / delete
    - document_service:     upload validation, text extraction, content access
    - storage:              StorageProvider (local disk or S3)
    - user_service:         profile, API keys, account deletion
    - billing_client:       Stripe API calls with retry
    - subscription_service: checkout, portal, cancel, resume
    - webhook_service:      Stripe event verification, ledger and dispatch
    - email_service:        SMTP notifications
"""
