"""
Points ledger: the append-only pointshistory collection plus the
denormalised user.loyalty_points counter that is kept in step with it.
"""

import logging
from typing import List, Optional

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from config import POINTS_HISTORY_LIMIT
from database import create_document, get_documents, to_object_id
from errors import DuplicateAwardError, NotFoundError, ValidationError
from schemas import PointsAudit, PointsHistory, PointsType, User

logger = logging.getLogger(__name__)


def award_key_for(order_id: str) -> str:
    return f"earned:{order_id}"


class PointsLedger:
    def __init__(self, db: Database):
        self.db = db
        self.history = db["pointshistory"]
        self.users = db["user"]

    def get_user(self, user_id: str) -> User:
        if not user_id:
            raise ValidationError("userId is required")
        oid = to_object_id(user_id)
        doc = self.users.find_one({"_id": oid}) if oid else None
        if not doc:
            raise NotFoundError("user", user_id)
        return User.from_document(doc)

    def record_earned(self, user_id: str, points: int, description: str,
                      order_id: Optional[str] = None) -> PointsHistory:
        """Append one earned entry. At most one entry may exist per order."""
        if not user_id:
            raise ValidationError("userId is required")
        if points <= 0:
            raise ValidationError("Earned points must be positive")
        entry = PointsHistory(
            user_id=user_id,
            type=PointsType.EARNED,
            points=points,
            description=description,
            order_id=order_id,
            award_key=award_key_for(order_id) if order_id else None,
        )
        doc = entry.to_document()
        if doc["award_key"] is None:
            # sparse index: entries without an order must lack the field entirely
            del doc["award_key"]
        try:
            entry.id = create_document(self.db, "pointshistory", doc)
        except DuplicateKeyError:
            raise DuplicateAwardError(order_id)
        return entry

    def award(self, user_id: str, points: int, description: str, order_id: str) -> Optional[PointsHistory]:
        """Record an earned entry and bump the user's balance by the same amount.

        Safe to call again for the same order: the ledger row is unique per
        order, and the increment only lands on a user whose credited_orders
        does not yet hold the order. A retry after an interrupted award
        therefore applies whichever half is missing. If the increment fails
        the ledger row written by this call is removed again. Returns None
        when the order was already fully awarded.
        """
        oid = to_object_id(user_id)
        if oid is None:
            raise NotFoundError("user", user_id)
        try:
            entry = self.record_earned(user_id, points, description, order_id)
        except DuplicateAwardError:
            logger.warning("Order %s already has a ledger entry, checking the balance", order_id)
            entry = None

        try:
            result = self.users.update_one(
                {"_id": oid, "credited_orders": {"$ne": order_id}},
                {"$inc": {"loyalty_points": points}, "$addToSet": {"credited_orders": order_id}},
            )
            if result.matched_count == 0:
                if self.users.count_documents({"_id": oid}) == 0:
                    raise NotFoundError("user", user_id)
                logger.warning("User %s was already credited for order %s, skipping", user_id, order_id)
                return entry
        except Exception:
            if entry is not None:
                logger.warning("Balance increment failed for user %s, removing ledger entry %s", user_id, entry.id)
                self.history.delete_one({"_id": to_object_id(entry.id)})
            raise

        logger.info("Awarded %d points to user %s for order %s", points, user_id, order_id)
        return entry

    def list_history(self, user_id: str, limit: int = POINTS_HISTORY_LIMIT) -> List[PointsHistory]:
        if not user_id:
            raise ValidationError("userId is required")
        limit = max(1, min(limit, POINTS_HISTORY_LIMIT))
        docs = get_documents(self.db, "pointshistory", {"user_id": user_id}, limit=limit, newest_first=True)
        return [PointsHistory.from_document(d) for d in docs]

    def get_balance(self, user_id: str) -> int:
        return self.get_user(user_id).loyalty_points

    def ledger_total(self, user_id: str) -> int:
        total = 0
        for doc in self.history.find({"user_id": user_id}):
            total += PointsHistory.from_document(doc).delta
        return total

    def audit(self, user_id: str) -> PointsAudit:
        """Compare the counter with the ledger sum. Read-only."""
        balance = self.get_balance(user_id)
        ledger_total = self.ledger_total(user_id)
        drift = balance - ledger_total
        if drift:
            logger.error("Points drift for user %s: balance=%d ledger=%d", user_id, balance, ledger_total)
        return PointsAudit(user_id=user_id, balance=balance, ledger_total=ledger_total, drift=drift)
