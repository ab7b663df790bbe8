from __future__ import annotations

from etags.api.routes.csrf import router as csrf_router
from etags.api.routes.health import router as health_router
from etags.api.routes.scan import router as scan_router

__all__ = ["csrf_router", "health_router", "scan_router"]
