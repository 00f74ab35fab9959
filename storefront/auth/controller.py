from functools import wraps
from typing import Optional

from quart import Blueprint, current_app, g, jsonify, request

from ..common.http import json_body
from .service import SessionAuthority

bp = Blueprint("auth", __name__)


def _authority() -> SessionAuthority:
    return current_app.session_authority


def bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return None


def require_admin(view):
    """Reject the request with 401 before the view runs unless the bearer
    token names a live admin session."""
    @wraps(view)
    async def wrapper(*args, **kwargs):
        g.admin = await _authority().authorize(bearer_token())
        return await view(*args, **kwargs)
    return wrapper


@bp.post("/api/admin/login")
async def admin_login():
    data = await json_body()
    result = await _authority().login(data.get("email"), data.get("password"))
    return jsonify({"token": result.token, "user": {"id": result.user_id, "email": result.email}})
