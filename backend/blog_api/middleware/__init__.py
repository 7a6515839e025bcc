"""HTTP middleware for the blog API."""

from blog_api.middleware.security_events import SecurityEventMiddleware
from blog_api.middleware.security_headers import SecurityHeadersMiddleware

__all__ = ["SecurityEventMiddleware", "SecurityHeadersMiddleware"]
