from .generate import router as generate_router
from .jobs import router as jobs_router
from .health import router as health_router

__all__ = ["generate_router", "jobs_router", "health_router"]
