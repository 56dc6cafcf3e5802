"""
Store-side stock and loyalty primitives.

Every quantity change is a single UPDATE evaluated by the database
(quantity = quantity -/+ n). Application code never reads a counter and
writes back a computed value, so concurrent terminals cannot lose updates.
The decrement is conditional: it matches zero rows when stock is short.

None of these helpers commit; they run inside the caller's transaction.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import case

from ..extensions import db
from ..models import Customer
from .catalog_service import get_item_model


def get_live_stock(item_type: str, item_id: int) -> int | None:
    """Current stock straight from the database, bypassing the identity map."""
    model = get_item_model(item_type)
    return db.session.query(model.quantity).filter(model.id == item_id).scalar()


def decrement_stock_if_available(item_type: str, item_id: int, quantity: int) -> bool:
    """Atomically take quantity base units. False when stock is insufficient."""
    model = get_item_model(item_type)
    updated = (
        db.session.query(model)
        .filter(model.id == item_id, model.quantity >= quantity)
        .update({model.quantity: model.quantity - quantity}, synchronize_session=False)
    )
    return updated == 1


def increment_stock(item_type: str, item_id: int, quantity: int) -> bool:
    """Atomically put quantity base units back. False when the item no longer exists."""
    model = get_item_model(item_type)
    updated = (
        db.session.query(model)
        .filter(model.id == item_id)
        .update({model.quantity: model.quantity + quantity}, synchronize_session=False)
    )
    return updated == 1


def apply_loyalty_accrual(customer_id: int, points_earned: int, amount_spent: Decimal) -> bool:
    updated = (
        db.session.query(Customer)
        .filter(Customer.id == customer_id)
        .update(
            {
                Customer.loyalty_points: Customer.loyalty_points + points_earned,
                Customer.total_purchases: Customer.total_purchases + 1,
                Customer.total_spent: Customer.total_spent + amount_spent,
            },
            synchronize_session=False,
        )
    )
    return updated == 1


def reverse_loyalty_accrual(customer_id: int, points: int, amount: Decimal) -> bool:
    """Take back points and spend for refunded goods, never below zero."""
    updated = (
        db.session.query(Customer)
        .filter(Customer.id == customer_id)
        .update(
            {
                Customer.loyalty_points: case(
                    (Customer.loyalty_points >= points, Customer.loyalty_points - points),
                    else_=0,
                ),
                Customer.total_spent: case(
                    (Customer.total_spent >= amount, Customer.total_spent - amount),
                    else_=0,
                ),
            },
            synchronize_session=False,
        )
    )
    return updated == 1
