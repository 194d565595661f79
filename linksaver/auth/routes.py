from flask import jsonify, request

from linksaver.auth import auth_bp
from linksaver.errors import AuthError, ConflictError, ValidationError
from linksaver.extensions import db
from linksaver.models import ApiToken, User
from linksaver.schemas import require_object


def _text_field(payload, name: str) -> str:
    value = payload.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(name, f"{name} must be a string")
    return value


def _credentials():
    payload = require_object(request.get_json(silent=True))
    username = _text_field(payload, "username").strip()
    password = _text_field(payload, "password")
    return payload, username, password


@auth_bp.route("/register", methods=["POST"])
def register():
    _payload, username, password = _credentials()
    if not username:
        raise ValidationError("username", "username and password are required")
    if not password:
        raise ValidationError("password", "username and password are required")
    if User.query.filter_by(username=username).first():
        raise ConflictError("username already exists")

    user = User(username=username, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return jsonify({"status": "created", "user_id": user.id}), 201


@auth_bp.route("/token", methods=["POST"])
def create_token_with_credentials():
    payload, username, password = _credentials()
    token_name = _text_field(payload, "token_name").strip() or "LinkSaver API Token"

    user = User.query.filter_by(username=username).first()
    if not user or not user.is_active or not user.check_password(password):
        raise AuthError("invalid credentials")

    token, token_hash = ApiToken.issue_token()
    row = ApiToken(user_id=user.id, name=token_name, token_hash=token_hash)
    db.session.add(row)
    db.session.commit()
    return jsonify({"token": token, "token_name": token_name, "user_id": user.id})
