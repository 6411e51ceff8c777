"""
Shared API Layer
================

Middleware and exception handlers registered on the FastAPI application.
"""
