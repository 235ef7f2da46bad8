"""SQLAlchemy models for the Budget Pay web application."""

from __future__ import annotations

import datetime as dt

from flask_sqlalchemy import SQLAlchemy


db = SQLAlchemy()


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    full_name = db.Column(db.String(120), nullable=False, default="")
    password_hash = db.Column(db.String(255), nullable=False)
    monthly_income = db.Column(db.Float, nullable=False, default=0.0)
    savings_goal_amount = db.Column(db.Float, nullable=False, default=0.0)
    savings_goal_deadline = db.Column(db.DateTime)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_superuser = db.Column(db.Boolean, nullable=False, default=False)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    categories = db.relationship(
        "Category", back_populates="user", cascade="all, delete-orphan", order_by="Category.id"
    )
    transactions = db.relationship("Transaction", back_populates="user", cascade="all, delete-orphan")
    expenses = db.relationship("Expense", back_populates="user", cascade="all, delete-orphan")
    goals = db.relationship("Goal", back_populates="user", cascade="all, delete-orphan")
    notification_states = db.relationship(
        "NotificationState", back_populates="user", cascade="all, delete-orphan"
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "monthly_income": self.monthly_income,
            "savings_goal_amount": self.savings_goal_amount,
            "savings_goal_deadline": (
                self.savings_goal_deadline.isoformat() if self.savings_goal_deadline else None
            ),
            "is_active": self.is_active,
            "is_superuser": self.is_superuser,
            "is_verified": self.is_verified,
        }


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = (db.UniqueConstraint("user_id", "name", name="uq_categories_user_name"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(255), nullable=False, default="")
    default_percentage = db.Column(db.Float, nullable=False, default=0.0)
    custom_percentage = db.Column(db.Float)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    color = db.Column(db.String(16))
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    user = db.relationship("User", back_populates="categories")
    transactions = db.relationship("Transaction", back_populates="category")
    expenses = db.relationship("Expense", back_populates="category")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "default_percentage": self.default_percentage,
            "custom_percentage": self.custom_percentage,
            "is_default": self.is_default,
            "color": self.color,
        }


class Transaction(db.Model):
    __tablename__ = "transactions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id", ondelete="SET NULL"))
    description = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    transaction_date = db.Column(db.DateTime, nullable=False)
    source = db.Column(db.String(32), nullable=False, default="manual")
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    user = db.relationship("User", back_populates="transactions")
    category = db.relationship("Category", back_populates="transactions")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "amount": self.amount,
            "category_id": self.category_id,
            "transaction_date": self.transaction_date.isoformat(),
            "source": self.source,
        }


class Expense(db.Model):
    """A recurring (or one-off) bill the user expects to pay."""

    __tablename__ = "expenses"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id", ondelete="SET NULL"))
    name = db.Column(db.String(120), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    frequency_type = db.Column(db.String(16), nullable=False, default="monthly")
    interval_days = db.Column(db.Integer)
    next_due_date = db.Column(db.Date, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    user = db.relationship("User", back_populates="expenses")
    category = db.relationship("Category", back_populates="expenses")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "amount": self.amount,
            "category_id": self.category_id,
            "frequency_type": self.frequency_type,
            "interval_days": self.interval_days,
            "next_due_date": self.next_due_date.isoformat(),
            "is_active": self.is_active,
        }


class Goal(db.Model):
    __tablename__ = "goals"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = db.Column(db.String(120), nullable=False, default="Savings goal")
    target_amount = db.Column(db.Float, nullable=False)
    deadline = db.Column(db.Date, nullable=False)
    saved_amount = db.Column(db.Float, nullable=False, default=0.0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    user = db.relationship("User", back_populates="goals")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "target_amount": self.target_amount,
            "deadline": self.deadline.isoformat(),
            "saved_amount": self.saved_amount,
            "is_active": self.is_active,
        }


class NotificationState(db.Model):
    """Read/dismissed flags for computed notifications, keyed by notification id."""

    __tablename__ = "notification_states"
    __table_args__ = (
        db.UniqueConstraint("user_id", "notification_id", name="uq_notification_states_user_notification"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    notification_id = db.Column(db.String(120), nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    is_dismissed = db.Column(db.Boolean, nullable=False, default=False)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    user = db.relationship("User", back_populates="notification_states")
