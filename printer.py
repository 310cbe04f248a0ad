"""
Ticket and Receipt Dispatch
===========================
Hands finished work to the printing collaborator.

- send: one dispatch ticket per print destination (kitchen, bar)
  holding only the quantities flushed by that send
- close: one receipt request, THERMAL or FISCAL

Formatting and device I/O belong to the printing service. When a
printer is disabled the job is simulated (logged and kept in memory).
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Tuple

from order import ReceiptKind, ReceiptRequest, SentLine


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchTicket:
    """Lines flushed to one destination by one send."""
    order_id: str
    slot_label: str
    destination: str
    lines: Tuple[SentLine, ...]
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "slot": self.slot_label,
            "destination": self.destination,
            "lines": [line.to_dict() for line in self.lines],
            "created_at": self.created_at,
        }


def build_dispatch_tickets(order_id: str, slot_label: str, flushed: List[SentLine]) -> List[DispatchTicket]:
    """Group flushed lines by print destination, keeping line order."""
    by_destination: Dict[str, List[SentLine]] = {}
    for line in flushed:
        by_destination.setdefault(line.print_destination, []).append(line)

    created_at = datetime.utcnow().isoformat()
    return [
        DispatchTicket(
            order_id=order_id,
            slot_label=slot_label,
            destination=destination,
            lines=tuple(lines),
            created_at=created_at,
        )
        for destination, lines in by_destination.items()
    ]


class SimulatedPrinter:
    """
    Printing collaborator that logs jobs instead of driving hardware.

    Jobs are kept in memory so the last tickets and receipts can be
    inspected (and tested).
    """

    def __init__(
        self,
        thermal_enabled: bool = False,
        fiscal_enabled: bool = False,
        thermal_name: str = "Epson TM-T20II",
        fiscal_port: str = "COM1"
    ):
        self.thermal_enabled = thermal_enabled
        self.fiscal_enabled = fiscal_enabled
        self.thermal_name = thermal_name
        self.fiscal_port = fiscal_port
        self.dispatched: List[DispatchTicket] = []
        self.receipts: List[ReceiptRequest] = []

    def device_for(self, receipt_kind: ReceiptKind) -> str:
        """Human-readable target device for a receipt kind."""
        if receipt_kind == ReceiptKind.FISCAL:
            return f"fiscal printer on {self.fiscal_port}"
        return f"thermal printer {self.thermal_name}"

    def print_dispatch(self, ticket: DispatchTicket):
        self.dispatched.append(ticket)

        if self.thermal_enabled:
            device = self.device_for(ReceiptKind.THERMAL)
        else:
            device = "simulated"

        logger.info(
            f"{ticket.destination.upper()} ticket ({device}) for {ticket.slot_label}: "
            + ", ".join(f"{line.quantity} x {line.name}" for line in ticket.lines),
            extra={"order_id": ticket.order_id}
        )

    def print_receipt(self, request: ReceiptRequest):
        self.receipts.append(request)

        if request.receipt_kind == ReceiptKind.FISCAL:
            enabled = self.fiscal_enabled
        else:
            enabled = self.thermal_enabled

        device = self.device_for(request.receipt_kind)

        if not enabled:
            logger.warning(
                f"{device} disabled, simulating receipt",
                extra={"order_id": request.order_id}
            )

        logger.info(
            f"Receipt ({request.receipt_kind.value}) for order {request.order_id} "
            f"on {device}: {len(request.items)} line(s), "
            f"total {request.total_amount:.2f}",
            extra={"order_id": request.order_id}
        )
