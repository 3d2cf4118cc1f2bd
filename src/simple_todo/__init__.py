"""
Simple Todo API - authentication backend for the Simple Todo app.

A FastAPI service that validates and sanitizes auth requests, forwards them
to a hosted identity provider (Supabase), rate limits by client IP, and
keeps an audit trail of security-relevant actions.
"""

__version__ = "1.0.0"

from .main import app

__all__ = ["app"]
