"""DarkMode Backend — Pydantic request/response schemas, one module per router."""
