"""API Routers package"""

from . import live_cam_router

__all__ = ["live_cam_router"]
