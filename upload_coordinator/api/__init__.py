"""API module exports"""
from .endpoints import router, get_coordinator

__all__ = ["router", "get_coordinator"]
