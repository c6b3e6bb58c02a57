"""
Shared, cross-cutting code for both services.

`core/` holds small building blocks that several features use (settings, DB
wiring, key-value store, errors, logging, tracing). Feature-specific SQL and
business logic stay in the feature package (e.g. `auth/`, `loans/`).
"""
