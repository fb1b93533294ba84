"""
FastAPI Backend for the Statement Rewards Pipeline

Provides REST API endpoints for statement parsing, categorization and
reward comparison.
"""

from .main import app

__all__ = ["app"]
