"""
API Routes Package

Contains all route modules for the rewards pipeline API.
"""

from .categorize import router as categorize_router
from .rewards import router as rewards_router
from .statements import router as statements_router

__all__ = [
    "statements_router",
    "categorize_router",
    "rewards_router",
]
