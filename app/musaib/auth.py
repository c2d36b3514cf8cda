"""
Request identity.

Sign-in is handled by the external auth provider, which forwards the
authenticated profile id in a trusted header (AUTH_USER_HEADER). This
module only resolves that id to an active Profile.
"""

from __future__ import annotations

import uuid

from flask import current_app, g, request
from sqlalchemy.exc import SQLAlchemyError

from app.musaib.db import db_session
from app.musaib.models import Profile


def load_current_user() -> None:
    """
    Loads g.current_user from the forwarded identity header.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex
    g.current_user = None
    if request.path.startswith(("/static/", "/health", "/healthz")):
        return

    raw = (request.headers.get(current_app.config["AUTH_USER_HEADER"]) or "").strip()
    if not raw:
        return
    try:
        profile_id = int(raw)
    except ValueError:
        current_app.logger.warning("Ignoring malformed identity header (request_id=%s)", g.request_id)
        return

    try:
        user = db_session().get(Profile, profile_id)
    except SQLAlchemyError as e:
        current_app.logger.error("load_current_user DB error (request_id=%s): %s", g.request_id, e)
        return
    if user and user.is_active:
        g.current_user = user


def current_user() -> Profile:
    u = getattr(g, "current_user", None)
    if not u:
        # require_permission runs first; reaching here means a route skipped it.
        raise RuntimeError("No current user")
    return u
