"""Authenticated todo-list backend.

- Identity is delegated to one upstream OAuth provider.
- Sessions are signed JWTs in an httpOnly cookie.
- Every todo read/write is scoped by (todo_id, owner user_id).

See DESIGN.md for the module map.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
