import hashlib
import secrets
import uuid
from datetime import datetime, timezone

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from linksaver.extensions import db, login_manager


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


link_tags = db.Table(
    "link_tags",
    db.Column(
        "link_id",
        db.String(36),
        db.ForeignKey("links.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    db.Column("tag_id", db.Integer, db.ForeignKey("tags.id"), primary_key=True),
)


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    links = db.relationship("Link", backref="user", lazy=True)
    collections = db.relationship("Collection", backref="user", lazy=True)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(User, int(user_id))


class Collection(db.Model):
    __tablename__ = "collections"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    color = db.Column(db.String(32), nullable=False, default="#f97316")
    is_public = db.Column(db.Boolean, nullable=False, default=False)
    share_slug = db.Column(db.String(64), nullable=True, unique=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    links = db.relationship("Link", backref="collection", lazy=True)

    def as_dict(self, link_count: int | None = None):
        payload = {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "is_public": self.is_public,
            "share_slug": self.share_slug,
            "created_at": _isoformat(self.created_at),
        }
        if link_count is not None:
            payload["link_count"] = link_count
        return payload

    def as_public_dict(self):
        payload = self.as_dict()
        payload.pop("user_id")
        return payload


class Link(db.Model):
    __tablename__ = "links"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    collection_id = db.Column(
        db.String(36),
        db.ForeignKey("collections.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    url = db.Column(db.String(2048), nullable=False)
    note = db.Column(db.Text, nullable=False, default="")
    title = db.Column(db.Text, nullable=True)
    description = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.Text, nullable=True)
    favicon_url = db.Column(db.Text, nullable=True)
    is_favorite = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    tags = db.relationship("Tag", secondary=link_tags, backref="links")

    __table_args__ = (
        db.Index("ix_link_user_url", "user_id", "url"),
        db.Index("ix_link_user_created", "user_id", "created_at"),
    )

    def as_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "url": self.url,
            "note": self.note or "",
            "title": self.title,
            "description": self.description,
            "image_url": self.image_url,
            "favicon_url": self.favicon_url,
            "tags": sorted(tag.name for tag in self.tags),
            "is_favorite": self.is_favorite,
            "collection_id": self.collection_id,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }

    def as_public_dict(self):
        payload = self.as_dict()
        for key in ("user_id", "is_favorite", "collection_id", "updated_at"):
            payload.pop(key)
        return payload

    def as_preview(self):
        return {
            "id": self.id,
            "title": self.title,
            "created_at": _isoformat(self.created_at),
        }


class Tag(db.Model):
    __tablename__ = "tags"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    name = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (db.UniqueConstraint("user_id", "name", name="uq_tag_user_name"),)


class ApiToken(db.Model):
    __tablename__ = "api_tokens"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    name = db.Column(db.String(120), nullable=False)
    token_hash = db.Column(db.String(128), nullable=False, unique=True)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    user = db.relationship("User", backref="api_tokens")

    @staticmethod
    def hash_token(token: str) -> str:
        return hashlib.sha256(token.encode("utf-8")).hexdigest()

    @staticmethod
    def issue_token(prefix="ls"):
        token = f"{prefix}_{secrets.token_urlsafe(32)}"
        return token, ApiToken.hash_token(token)
