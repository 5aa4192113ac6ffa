"""
TISS API Endpoints
"""

from .glosas import router as glosas_router
from .guias import router as guias_router
from .reports import router as reports_router
from .tuss import router as tuss_router

__all__ = [
    "tuss_router",
    "guias_router",
    "glosas_router",
    "reports_router",
]
