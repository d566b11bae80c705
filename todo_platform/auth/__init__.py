"""Authentication / authorization helpers.

Auth is intentionally small:

- Identity comes from one upstream OAuth provider (subject id = `open_id`)
- Users table (open_id + one role flag)
- HS256 JWT session token in an httpOnly cookie

Every data endpoint depends on one of `public_procedure`,
`protected_procedure` or `admin_procedure`, which resolve the session once
per request and run the matching guards before the handler body.
"""

from .deps import AuthContext, admin_procedure, protected_procedure, public_procedure
from .crud import get_or_create_dev_user, upsert_user

__all__ = [
    "AuthContext",
    "admin_procedure",
    "protected_procedure",
    "public_procedure",
    "get_or_create_dev_user",
    "upsert_user",
]
