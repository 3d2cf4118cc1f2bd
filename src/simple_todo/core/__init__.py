"""
Core business logic components.

This package contains:
- Input validation and sanitization
- Rate limiting and bearer authentication
- The auth service and hosted provider adapters
- Audit logging, masking, metrics and health checks
"""
