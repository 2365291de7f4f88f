"""
Data API for the Local Content Store
WebSocket surface over a LocalClient
"""

from .server import DataAPIServer

__all__ = ['DataAPIServer']
