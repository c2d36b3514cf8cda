from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g

from app.musaib.models import Profile


def user_has_permission(user: Profile | None, permission_key: str) -> bool:
    if not user or not user.is_active or user.role_ref is None:
        return False
    return any(perm.key == permission_key for perm in user.role_ref.permissions)


def require_permission(*permission_keys: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: Profile | None = getattr(g, "current_user", None)
            # No identity forwarded by the auth provider → 401
            if not user or not user.is_active:
                abort(401)
            # Authenticated but holding none of the permissions → 403
            if not any(user_has_permission(user, k) for k in permission_keys):
                g.missing_permission = " | ".join(permission_keys)
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
