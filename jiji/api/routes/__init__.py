from __future__ import annotations

from jiji.api.routes.ask import router as ask_router
from jiji.api.routes.health import router as health_router

__all__ = ["ask_router", "health_router"]
