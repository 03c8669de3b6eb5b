"""Core overlay primitives (records, lifecycle events, suspension points).

Kept free of FastAPI and Redis concerns so it can be reused by the controller, the API and tests.
"""
