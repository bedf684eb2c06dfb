# api/__init__.py
"""
API Endpoints Package

- chat: /api/ai chat, session and health routes
"""

from .chat import router as chat_router

__all__ = [
    "chat_router"
]
