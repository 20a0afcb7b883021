"""
Middleware components for request processing.

This package contains middleware for:
- Security (CORS for browser widgets calling the scheduling endpoints)
"""

from bookingdesk.middleware.cors import CORSMiddleware

__all__ = [
    "CORSMiddleware",
]
