"""
API endpoints package.

Contains FastAPI routers for all service endpoints:
- /auth/* - Registration, login, password recovery/reset, logout, profile
- /health, /readyz - Health checks
- /metrics - Prometheus metrics
"""
from .auth import router as auth_router
from .healthz import router as healthz_router
from .metrics import router as metrics_router

__all__ = ["auth_router", "healthz_router", "metrics_router"]
