"""
Order repository: creation, lookups, and the status transition that awards
loyalty points when an order is completed.
"""

import logging
from typing import List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

import transitions
from catalog import get_product
from database import create_document, get_documents, to_object_id, utcnow
from errors import ConsistencyError, NotFoundError, ValidationError
from ledger import PointsLedger
from points import calculate_points
from schemas import Order, OrderItem, OrderItemInput, OrderStatus

logger = logging.getLogger(__name__)


class OrderRepository:
    def __init__(self, db: Database):
        self.db = db
        self.orders = db["order"]
        self.ledger = PointsLedger(db)

    # -------------------- create --------------------

    def _build_item(self, item: OrderItemInput) -> OrderItem:
        product = get_product(self.db, item.product_id)
        unit_price = product.price_for(item.size)
        if unit_price is None:
            raise ValidationError(f"Size '{item.size}' is not available for {product.name}")
        return OrderItem(
            product_id=product.id,
            name=product.name,
            category=product.category,
            image=product.image,
            unit_price=unit_price,
            quantity=item.quantity,
            size=item.size,
            total=unit_price * item.quantity,
        )

    def create_order(self, items: List[OrderItemInput], customer_name: str, notes: Optional[str] = None,
                     user_id: Optional[str] = None) -> Order:
        if not items:
            raise ValidationError("Order items are required")
        if not customer_name or not customer_name.strip():
            raise ValidationError("Customer name is required")
        if user_id:
            # only existing users can be credited later
            self.ledger.get_user(user_id)

        order_items = [self._build_item(i) for i in items]
        order = Order(
            items=order_items,
            total=sum(i.total for i in order_items),
            status=OrderStatus.PENDING,
            customer_name=customer_name.strip(),
            notes=notes or None,
            user_id=user_id or None,
            created_at=utcnow(),
        )
        order.id = create_document(self.db, "order", order.to_document())
        logger.info("Created order %s: %d items, total %d, user %s",
                    order.id, len(order_items), order.total, order.user_id or "guest")
        return self.get_order_by_id(order.id)

    # -------------------- read --------------------

    def _find(self, order_id: str) -> dict:
        oid = to_object_id(order_id)
        doc = self.orders.find_one({"_id": oid}) if oid else None
        if not doc:
            raise NotFoundError("order", order_id)
        return doc

    def get_order_by_id(self, order_id: str) -> Order:
        return Order.from_document(self._find(order_id))

    def list_orders(self, user_id: Optional[str] = None, status: Optional[str] = None) -> List[Order]:
        query = {}
        if user_id:
            query["user_id"] = user_id
        if status:
            query["status"] = transitions.parse_status(status).value
        return [Order.from_document(d) for d in get_documents(self.db, "order", query, newest_first=True)]

    # -------------------- status --------------------

    def update_status(self, order_id: str, new_status: str) -> Order:
        target = transitions.parse_status(new_status)
        current = self._find(order_id)
        if not transitions.check_transition(current["status"], target):
            if target == OrderStatus.COMPLETED and current.get("points_pending"):
                logger.warning("Order %s completed with an unfinished points award, resuming", order_id)
                return self._settle_points(Order.from_document(current))
            logger.info("Order %s already %s, nothing to do", order_id, target.value)
            return Order.from_document(current)
        return self._commit_transition(current, target)

    def _commit_transition(self, current: dict, target: OrderStatus) -> Order:
        """Write target only if the order still holds the status it was read with.

        The filter on the prior status is what stops two concurrent completions
        from both reaching the accrual step. Entering completed also sets
        points_pending in the same write; it is cleared only once the award has
        settled, so an interrupted award can be resumed.
        """
        prior = current["status"]
        accrues = transitions.enters_completed(prior, target)
        changes = {"status": target.value, "updated_at": utcnow()}
        if accrues:
            changes["points_pending"] = True
        updated = self.orders.find_one_and_update(
            {"_id": current["_id"], "status": prior},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        order_id = str(current["_id"])
        if updated is None:
            latest = self._find(order_id)
            if latest["status"] == target.value:
                logger.info("Order %s was moved to %s concurrently", order_id, target.value)
                return Order.from_document(latest)
            logger.error("Order %s changed from %s to %s while moving to %s",
                         order_id, prior, latest["status"], target.value)
            raise ConsistencyError(f"Order {order_id} was modified concurrently, reload and retry")

        logger.info("Order %s: %s -> %s", order_id, prior, target.value)
        order = Order.from_document(updated)
        if accrues:
            try:
                return self._settle_points(order)
            except Exception as e:
                self._revert_status(order_id, target, prior)
                if isinstance(e, ConsistencyError):
                    raise
                raise ConsistencyError(f"Points award for order {order_id} failed: {e}") from e
        return order

    def _settle_points(self, order: Order) -> Order:
        """Run the award for a completed order, then clear points_pending."""
        self._accrue(order)
        settled = self.orders.find_one_and_update(
            {"_id": to_object_id(order.id)},
            {"$set": {"points_pending": False}},
            return_document=ReturnDocument.AFTER,
        )
        return Order.from_document(settled)

    def _accrue(self, order: Order) -> None:
        if not order.user_id:
            logger.info("Order %s is a guest order, no points", order.id)
            return
        points = calculate_points(order.items)
        if points == 0:
            logger.info("Order %s earns no points", order.id)
            return
        description = f"Earned from order #{order.id[-6:]} ({order.customer_name})"
        self.ledger.award(order.user_id, points, description, order.id)

    def _revert_status(self, order_id: str, target: OrderStatus, prior: str) -> None:
        result = self.orders.update_one(
            {"_id": to_object_id(order_id), "status": target.value},
            {"$set": {"status": prior, "points_pending": False, "updated_at": utcnow()}},
        )
        logger.warning("Reverted order %s from %s to %s (matched=%d)",
                       order_id, target.value, prior, result.matched_count)
