"""
Transition Workflow Routes Module

- configure.py: Open, choose stage/reason, responses, files, queries, submit, close
- notification.py: Draft edits, channels, recipients, AI drafting, send/suppress/skip

Both routers are mounted under the same prefix by the API router.
"""

from .configure import router as configure_router
from .notification import router as notification_router

__all__ = ["configure_router", "notification_router"]
