"""
POS Service
===========
Boundary operations of the order core.

Each operation:
1. resolves raw identifiers (slot, order id, item id)
2. runs one serialized unit of work through OrderStore.mutate
3. returns the committed order snapshot as a plain dict

Clients replace their local view with the returned snapshot. On any
PosError nothing was committed and the client drops its optimistic
state.
"""

from typing import Any, Dict, List, Optional

import structlog
from prometheus_client import Counter

from admin_gate import AdminAuthorization, AdminOverrideGate, StaticAdminCodeVerifier
from errors import PosError, ValidationError
from menu import MenuCatalog
from order import OrderLifecycle, OrderStatus, ReceiptKind
from printer import SimulatedPrinter, build_dispatch_tickets
from reconciler import QuantityReconciler
from slots import FloorPlan, TableAddressResolver
from store import OrderStore


# Structured logging
logger = structlog.get_logger(__name__)


pos_operation_errors = Counter(
    'pos_operation_errors_total',
    'Rejected boundary operations',
    ['operation', 'error']
)


class PosService:
    """
    Order core facade.

    Collaborators are injected; create_pos_service() wires them from
    configuration.
    """

    def __init__(
        self,
        catalog: MenuCatalog,
        gate: AdminOverrideGate,
        floor_plan: Optional[FloorPlan] = None,
        printer=None,
        store: Optional[OrderStore] = None,
        takeout_start: int = 1000,
        max_quantity_per_item: int = 99,
        max_items_per_order: int = 100
    ):
        self.catalog = catalog
        self.gate = gate
        self.printer = printer or SimulatedPrinter()
        self.store = store or OrderStore()
        self.lifecycle = OrderLifecycle(max_quantity_per_item, max_items_per_order)
        self.reconciler = QuantityReconciler(self.lifecycle, max_quantity_per_item)
        self.resolver = TableAddressResolver(self.store, floor_plan, takeout_start)

    # ========================================================================
    # READS
    # ========================================================================

    async def get_or_create_for_slot(self, identifier: Any) -> Dict[str, Any]:
        """Active order for a slot identifier, created if the slot is free."""
        with self._operation("get_or_create"):
            slot = self.resolver.resolve(identifier)
            order = await self.store.get_or_create(slot, self.lifecycle.create)
            return order.to_dict()

    async def new_takeout_order(self) -> Dict[str, Any]:
        with self._operation("new_takeout"):
            slot = self.resolver.next_takeout_slot()
            order = await self.store.get_or_create(slot, self.lifecycle.create)
            return order.to_dict()

    def get_order(self, order_id: str) -> Dict[str, Any]:
        with self._operation("get_order"):
            return self.store.get(order_id).to_dict()

    def list_active_orders(self, status: Any = None) -> List[Dict[str, Any]]:
        """Active orders, optionally only those in one status."""
        with self._operation("list_orders"):
            wanted = None if status is None else self._parse_status(status)
            return [
                order.to_dict()
                for order in self.store.list_active()
                if wanted is None or order.status == wanted
            ]

    # ========================================================================
    # ITEM MUTATIONS
    # ========================================================================

    async def add_item(
        self,
        order_id: str,
        menu_item_id: str,
        quantity: int,
        notes: Optional[str] = None
    ) -> Dict[str, Any]:
        with self._operation("add_item", order_id=order_id):
            menu_item = self.catalog.get_item(menu_item_id)

            async with self.store.mutate(order_id) as order:
                item = self.lifecycle.add_item(order, menu_item, quantity, notes)

            logger.info(
                "item_added",
                order_id=order_id,
                item_id=item.item_id,
                menu_item_id=menu_item.menu_item_id,
                quantity=quantity
            )
            return order.to_dict()

    async def remove_item(self, order_id: str, item_id: str) -> Dict[str, Any]:
        with self._operation("remove_item", order_id=order_id):
            async with self.store.mutate(order_id) as order:
                self.reconciler.remove_item(order, order.find_item(item_id))

            logger.info("item_removed", order_id=order_id, item_id=item_id)
            return order.to_dict()

    async def update_quantity(self, order_id: str, item_id: str, new_quantity: int) -> Dict[str, Any]:
        with self._operation("update_quantity", order_id=order_id):
            async with self.store.mutate(order_id) as order:
                self.reconciler.set_quantity(order, order.find_item(item_id), new_quantity)

            logger.info(
                "quantity_updated",
                order_id=order_id,
                item_id=item_id,
                quantity=new_quantity
            )
            return order.to_dict()

    def admin_login(self, credential: Optional[str]) -> AdminAuthorization:
        with self._operation("admin_login"):
            return self.gate.authorize(credential)

    async def admin_remove_item(
        self,
        order_id: str,
        item_id: str,
        amount_to_remove: int,
        credential: Optional[str] = None,
        authorization: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Forced removal. Takes either a raw admin credential (authorized on
        the spot) or a token from an earlier admin_login.
        """
        with self._operation("admin_remove_item", order_id=order_id):
            if authorization is None:
                authorization = self.gate.authorize(credential)

            # Fail on a bad token before queueing behind the order lock
            self.gate.validate(authorization)

            async with self.store.mutate(order_id) as order:
                record = self.gate.force_remove(
                    order,
                    order.find_item(item_id),
                    amount_to_remove,
                    authorization
                )

            self.gate.record_override(record)
            return order.to_dict()

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def send(self, order_id: str) -> Dict[str, Any]:
        with self._operation("send", order_id=order_id):
            async with self.store.mutate(order_id) as order:
                flushed = self.lifecycle.send(order)

            logger.info(
                "order_sent",
                order_id=order_id,
                lines=len(flushed),
                quantity=sum(line.quantity for line in flushed)
            )

            for ticket in build_dispatch_tickets(order_id, order.slot.label, flushed):
                self._dispatch(self.printer.print_dispatch, ticket, order_id)

            return order.to_dict()

    async def close(self, order_id: str, receipt_kind: Any = ReceiptKind.THERMAL) -> Dict[str, Any]:
        """Close a sent order; returns the receipt request descriptor."""
        with self._operation("close", order_id=order_id):
            kind = self._parse_receipt_kind(receipt_kind)

            async with self.store.mutate(order_id) as order:
                receipt = self.lifecycle.close(order, kind)

            logger.info(
                "order_closed",
                order_id=order_id,
                total_amount=receipt.total_amount,
                receipt_kind=receipt.receipt_kind.value
            )

            self._dispatch(self.printer.print_receipt, receipt, order_id)
            return receipt.to_dict()

    async def move(self, order_id: str, new_identifier: Any) -> Dict[str, Any]:
        with self._operation("move", order_id=order_id):
            new_slot = self.resolver.resolve(new_identifier)

            async with self.store.mutate(order_id) as order:
                self.lifecycle.move_to_table(
                    order,
                    new_slot,
                    self.store.order_id_for_slot(new_slot)
                )

            logger.info("order_moved", order_id=order_id, slot=new_slot.label)
            return order.to_dict()

    # ========================================================================
    # HELPERS
    # ========================================================================

    def _operation(self, name: str, **context):
        return _OperationScope(name, context)

    def _dispatch(self, print_fn, job, order_id: str):
        # Order is already committed; a printer fault must not undo it
        try:
            print_fn(job)
        except Exception as e:
            logger.error("print_failed", order_id=order_id, error=str(e))

    @staticmethod
    def _parse_receipt_kind(receipt_kind: Any) -> ReceiptKind:
        if isinstance(receipt_kind, ReceiptKind):
            return receipt_kind
        try:
            return ReceiptKind(str(receipt_kind).lower())
        except ValueError:
            raise ValidationError(
                f"Unknown receipt kind: {receipt_kind!r}",
                {"receipt_kind": str(receipt_kind)}
            )

    @staticmethod
    def _parse_status(status: Any) -> OrderStatus:
        if isinstance(status, OrderStatus):
            return status
        try:
            return OrderStatus(str(status).lower())
        except ValueError:
            raise ValidationError(
                f"Unknown order status: {status!r}",
                {"status": str(status)}
            )


class _OperationScope:
    """Logs and counts PosErrors leaving a boundary operation, then re-raises."""

    def __init__(self, name: str, context: Dict[str, Any]):
        self.name = name
        self.context = context

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc is not None and isinstance(exc, PosError):
            pos_operation_errors.labels(operation=self.name, error=exc.code).inc()
            logger.warning(
                "operation_rejected",
                operation=self.name,
                error=exc.code,
                message=exc.message,
                requires_admin=exc.requires_admin,
                **self.context
            )
        return False


# ============================================================================
# FACTORY
# ============================================================================

def create_pos_service(config) -> PosService:
    """Wire a PosService from a config.Config instance."""
    if config.orders.menu_file:
        catalog = MenuCatalog.from_json_file(config.orders.menu_file)
    else:
        catalog = MenuCatalog()

    gate = AdminOverrideGate(
        StaticAdminCodeVerifier(config.admin.admin_code),
        ttl_seconds=config.admin.token_ttl_seconds
    )
    floor_plan = FloorPlan(config.floor.tables, config.floor.max_table_number)
    printer = SimulatedPrinter(
        thermal_enabled=config.printers.thermal_enabled,
        fiscal_enabled=config.printers.fiscal_enabled,
        thermal_name=config.printers.thermal_name,
        fiscal_port=config.printers.fiscal_port
    )

    logger.info("pos_service_created", menu_items=len(catalog))

    return PosService(
        catalog=catalog,
        gate=gate,
        floor_plan=floor_plan,
        printer=printer,
        takeout_start=config.orders.takeout_start,
        max_quantity_per_item=config.orders.max_quantity_per_item,
        max_items_per_order=config.orders.max_items_per_order
    )
