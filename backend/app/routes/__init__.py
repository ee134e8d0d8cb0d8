# Routes package init
"""
DarkMode Backend — API Routes Package
=======================================

Route Inventory:
    - auth.py:          /api/auth/*            register, login, refresh, logout, password, email
    - users.py:         /api/users/*           profile, usage, API keys, account deletion
    - sessions.py:      /api/sessions/*        interview sessions (create/end are billable)
    - documents.py:     /api/documents/*       uploads and extracted text
    - analytics.py:     /api/analytics/*       totals, stats, streak, leaderboard
    - subscriptions.py: /api/subscriptions/*   plans, status, checkout, portal
    - webhooks.py:      /api/webhooks/stripe   Stripe event receiver
    - health.py:        /health                service health check

Routes stay thin: extract the request, call a service, shape the response.
"""
