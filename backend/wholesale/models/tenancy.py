from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Restaurant(db.Model):
    """
    Multi-tenant root: every catalog item, order and audit row belongs to
    exactly one restaurant.

    Services never read the tenant from ambient state. Every public call takes
    an explicit restaurant_id and verifies the entity it touches belongs to it.
    """
    __tablename__ = "restaurants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    # Prefix for order numbers, e.g. "HAF" -> "HAF-W-001"
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Restaurant id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class User(db.Model):
    """Staff member referenced as the actor on stock audit rows."""
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("restaurant_id", "email", name="uq_users_restaurant_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)

    restaurant = db.relationship("Restaurant", backref=db.backref("users", lazy=True))

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"
