from functools import wraps

from flask import g, request
from flask_login import current_user

from linksaver.errors import AuthError
from linksaver.extensions import db, login_manager
from linksaver.models import ApiToken, utcnow


@login_manager.request_loader
def user_from_bearer_token(req):
    auth_header = req.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header.removeprefix("Bearer ").strip()
    if not token:
        return None
    token_row = ApiToken.query.filter_by(token_hash=ApiToken.hash_token(token)).first()
    if not token_row or token_row.revoked_at is not None:
        return None
    if not token_row.user.is_active:
        return None
    token_row.last_used_at = utcnow()
    db.session.commit()
    return token_row.user


def api_auth_required(func):
    @wraps(func)
    def wrapped(*args, **kwargs):
        if not current_user.is_authenticated:
            if request.headers.get("Authorization"):
                raise AuthError("Invalid or expired token")
            raise AuthError("Missing authorization token")
        g.api_user = current_user._get_current_object()
        return func(*args, **kwargs)

    return wrapped
