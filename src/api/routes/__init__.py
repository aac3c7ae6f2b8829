"""FastAPI route modules.

Exports all route modules for inclusion in the main application.
"""

from src.api.routes import chat, feedback, guest, history, share, utilities

__all__ = [
    "chat",
    "feedback",
    "guest",
    "history",
    "share",
    "utilities",
]
