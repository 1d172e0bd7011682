"""HTTP layer: routes, request/response schemas and middleware."""

from sitechat.api.routes import router

__all__ = ["router"]
