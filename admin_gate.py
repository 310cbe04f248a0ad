"""
Admin Override Gate
===================
Authenticated bypass of the "cannot reduce or remove sent quantity" rule.

Flow:
    credential -> authorize() -> AdminAuthorization (short-lived token)
    AdminAuthorization -> force_remove() -> OverrideRecord
    committed order -> record_override(record) -> audit trail

force_remove is the only code path allowed to lower a quantity below
what was already sent, or to delete a partially sent line.
"""

import hmac
import secrets
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Deque, Dict, List, Optional, Union

import structlog
from prometheus_client import Counter

from errors import InvalidCredential, InvalidQuantity
from order import Order, OrderItem


# Structured logging (audit trail)
logger = structlog.get_logger(__name__)


admin_authorizations = Counter(
    'pos_admin_authorizations_total',
    'Admin authorization attempts',
    ['result']
)
admin_overrides = Counter(
    'pos_admin_overrides_total',
    'Admin forced removals',
    ['kind']
)


# ============================================================================
# CREDENTIAL VERIFICATION (collaborator)
# ============================================================================

class StaticAdminCodeVerifier:
    """Compares a credential against one configured admin code."""

    def __init__(self, admin_code: str):
        if not admin_code:
            raise ValueError("admin_code must not be empty")
        self._admin_code = admin_code.encode()

    def verify(self, credential: Optional[str]) -> bool:
        if not credential or not credential.strip():
            return False
        return hmac.compare_digest(credential.strip().encode(), self._admin_code)


# ============================================================================
# TOKENS AND AUDIT RECORDS
# ============================================================================

@dataclass(frozen=True)
class AdminAuthorization:
    """Capability token produced by a successful authorize()."""
    token: str
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


@dataclass(frozen=True)
class OverrideRecord:
    """One audited forced removal."""
    order_id: str
    item_id: str
    menu_item_id: str
    amount_requested: int
    quantity_before: int
    quantity_after: int
    sent_before: int
    sent_after: int
    deleted: bool
    token_suffix: str
    at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "item_id": self.item_id,
            "menu_item_id": self.menu_item_id,
            "amount_requested": self.amount_requested,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "sent_before": self.sent_before,
            "sent_after": self.sent_after,
            "deleted": self.deleted,
            "token_suffix": self.token_suffix,
            "at": self.at.isoformat(),
        }


# ============================================================================
# GATE
# ============================================================================

class AdminOverrideGate:
    """
    Issues admin tokens and performs audited forced removals.

    Tokens live in memory for ttl_seconds. Expired tokens are pruned
    whenever a new one is issued.
    """

    def __init__(
        self,
        verifier,
        ttl_seconds: int = 300,
        clock: Callable[[], datetime] = datetime.utcnow,
        audit_limit: int = 1000
    ):
        self.verifier = verifier
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._tokens: Dict[str, AdminAuthorization] = {}
        # Most recent committed overrides only
        self._audit: Deque[OverrideRecord] = deque(maxlen=audit_limit)

    def authorize(self, credential: Optional[str]) -> AdminAuthorization:
        """
        Verify credential and issue a short-lived token.

        Raises:
            InvalidCredential: Credential rejected by the verifier
        """
        if not self.verifier.verify(credential):
            admin_authorizations.labels(result="rejected").inc()
            logger.warning("admin_authorization_rejected")
            raise InvalidCredential()

        now = self._clock()
        self._prune(now)

        authorization = AdminAuthorization(
            token=secrets.token_urlsafe(24),
            issued_at=now,
            expires_at=now + self.ttl,
        )
        self._tokens[authorization.token] = authorization

        admin_authorizations.labels(result="granted").inc()
        logger.info(
            "admin_authorization_granted",
            token_suffix=authorization.token[-6:],
            expires_at=authorization.expires_at.isoformat()
        )
        return authorization

    def validate(self, authorization: Union[AdminAuthorization, str, None]) -> AdminAuthorization:
        """
        Check that a token was issued here and has not expired.

        Raises:
            InvalidCredential: Unknown or expired token
        """
        if authorization is None:
            raise InvalidCredential("admin authorization required")

        token = authorization.token if isinstance(authorization, AdminAuthorization) else authorization
        issued = self._tokens.get(token)

        if issued is None:
            raise InvalidCredential("unknown admin authorization")

        if issued.is_expired(self._clock()):
            del self._tokens[token]
            raise InvalidCredential("admin authorization expired")

        return issued

    def force_remove(
        self,
        order: Order,
        item: OrderItem,
        amount_to_remove: Any,
        authorization: Union[AdminAuthorization, str, None]
    ) -> OverrideRecord:
        """
        Remove amount_to_remove from a line regardless of sent quantity.

        amount >= quantity deletes the line. A partial removal clamps
        sent_quantity down to the new quantity. The returned record is
        not audited until record_override() is called for it.

        Raises:
            InvalidCredential: Missing, unknown or expired authorization
            InvalidQuantity: amount_to_remove < 1
        """
        issued = self.validate(authorization)

        if isinstance(amount_to_remove, bool) or not isinstance(amount_to_remove, int):
            raise InvalidQuantity(amount_to_remove, "amount must be a whole number")
        if amount_to_remove < 1:
            raise InvalidQuantity(amount_to_remove, "amount to remove must be at least 1")

        quantity_before = item.quantity
        sent_before = item.sent_quantity

        if amount_to_remove >= item.quantity:
            order.delete_item(item)
            deleted = True
            quantity_after = 0
            sent_after = 0
        else:
            item.quantity -= amount_to_remove
            item.sent_quantity = min(item.sent_quantity, item.quantity)
            deleted = False
            quantity_after = item.quantity
            sent_after = item.sent_quantity

        order.recompute_totals()

        record = OverrideRecord(
            order_id=order.order_id,
            item_id=item.item_id,
            menu_item_id=item.menu_item_id,
            amount_requested=amount_to_remove,
            quantity_before=quantity_before,
            quantity_after=quantity_after,
            sent_before=sent_before,
            sent_after=sent_after,
            deleted=deleted,
            token_suffix=issued.token[-6:],
            at=self._clock(),
        )
        return record

    def record_override(self, record: OverrideRecord):
        """
        Add a forced removal to the audit trail.

        Call once the order holding the change has been committed; a
        removal that was rolled back is never recorded.
        """
        self._audit.append(record)

        admin_overrides.labels(kind="delete" if record.deleted else "reduce").inc()
        logger.warning("admin_override", **record.to_dict())

    def get_audit_trail(self) -> List[OverrideRecord]:
        return list(self._audit)

    def _prune(self, now: datetime):
        expired = [t for t, a in self._tokens.items() if a.is_expired(now)]
        for token in expired:
            del self._tokens[token]
