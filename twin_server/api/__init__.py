"""
HTTP surface of the twin server.
"""
from .app import create_app

__all__ = ["create_app"]
