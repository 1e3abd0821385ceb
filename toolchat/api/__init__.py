"""
FastAPI server module for toolchat.

Provides the streaming chat endpoint and the capability catalog.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
