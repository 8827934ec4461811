"""HTTP middleware."""

from .rbac import RBACMiddleware

__all__ = ["RBACMiddleware"]
