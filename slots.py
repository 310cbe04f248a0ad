"""
Slot Addressing
===============
Dine-in tables and takeout tickets addressed through one tagged union.

    Slot = DineIn(table_number 1-999) | Takeout(sequence_number >= 1000)

Raw identifiers (path params, form input) are resolved into a Slot once,
at the boundary. Everything below the boundary works on Slot values.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable, Optional, Union

from errors import SlotInvalid


logger = logging.getLogger(__name__)


MAX_TABLE_NUMBER = 999
TAKEOUT_MIN = 1000

_TAKEOUT_TAG = re.compile(r"^(?:t|to|takeout)[-_: ]?(\d+)$", re.IGNORECASE | re.ASCII)


# ============================================================================
# SLOT TYPES
# ============================================================================

@dataclass(frozen=True)
class DineIn:
    """A physical table on the floor plan."""
    table_number: int

    @property
    def number(self) -> int:
        return self.table_number

    @property
    def kind(self) -> str:
        return "dine_in"

    @property
    def label(self) -> str:
        return f"table {self.table_number}"

    def to_dict(self):
        return {"kind": self.kind, "number": self.number, "label": self.label}


@dataclass(frozen=True)
class Takeout:
    """A takeout ticket minted for the running session."""
    sequence_number: int

    @property
    def number(self) -> int:
        return self.sequence_number

    @property
    def kind(self) -> str:
        return "takeout"

    @property
    def label(self) -> str:
        return f"takeout {self.sequence_number}"

    def to_dict(self):
        return {"kind": self.kind, "number": self.number, "label": self.label}


Slot = Union[DineIn, Takeout]


def slot_for_number(number: int) -> Slot:
    """Map a bare number onto its slot kind by range."""
    if 1 <= number <= MAX_TABLE_NUMBER:
        return DineIn(number)
    if number >= TAKEOUT_MIN:
        return Takeout(number)
    raise SlotInvalid(number)


# ============================================================================
# FLOOR PLAN (collaborator)
# ============================================================================

class FloorPlan:
    """
    Set of dine-in table numbers that exist on the floor.

    An empty table set means every number from 1 to max_table_number.
    """

    def __init__(
        self,
        tables: Optional[Iterable[int]] = None,
        max_table_number: int = MAX_TABLE_NUMBER
    ):
        self.max_table_number = min(max_table_number, MAX_TABLE_NUMBER)
        self._tables: FrozenSet[int] = frozenset(tables or ())

    def is_valid_table(self, table_number: int) -> bool:
        if not 1 <= table_number <= self.max_table_number:
            return False
        if not self._tables:
            return True
        return table_number in self._tables

    def table_numbers(self) -> list:
        if self._tables:
            return sorted(self._tables)
        return list(range(1, self.max_table_number + 1))


# ============================================================================
# RESOLVER
# ============================================================================

class TableAddressResolver:
    """
    Maps raw identifiers to slots and slots to active orders.

    Takeout numbers are minted from a counter that only moves forward
    for the lifetime of the resolver.
    """

    def __init__(
        self,
        store,
        floor_plan: Optional[FloorPlan] = None,
        takeout_start: int = TAKEOUT_MIN
    ):
        if takeout_start < TAKEOUT_MIN:
            raise ValueError(f"takeout_start must be >= {TAKEOUT_MIN}")

        self._store = store
        self.floor_plan = floor_plan or FloorPlan()
        # Highest takeout number issued or seen so far
        self._takeout_high_water = takeout_start - 1

    def resolve(self, raw_identifier: Any) -> Slot:
        """
        Resolve a raw identifier into a Slot.

        Accepts ints, numeric strings and takeout-tagged strings
        ("T1002", "takeout-1002").

        Raises:
            SlotInvalid: Unparseable, out of range, or not on the floor plan
        """
        if isinstance(raw_identifier, (DineIn, Takeout)):
            slot = raw_identifier
        else:
            slot = self._parse(raw_identifier)

        if isinstance(slot, DineIn):
            if not self.floor_plan.is_valid_table(slot.table_number):
                raise SlotInvalid(raw_identifier, "table is not on the floor plan")
        else:
            if slot.sequence_number < TAKEOUT_MIN:
                raise SlotInvalid(raw_identifier, f"takeout numbers start at {TAKEOUT_MIN}")
            self._note_takeout(slot.sequence_number)

        return slot

    def next_takeout_slot(self) -> Takeout:
        """Mint a takeout slot above every number issued so far and not in use."""
        candidate = self._takeout_high_water + 1

        while self._store.order_id_for_slot(Takeout(candidate)) is not None:
            candidate += 1

        self._takeout_high_water = candidate
        logger.info(f"Takeout slot issued: {candidate}")

        return Takeout(candidate)

    def active_order_for(self, slot: Slot):
        """Active order snapshot bound to slot, or None if the slot is free."""
        return self._store.active_order_for_slot(slot)

    def _note_takeout(self, number: int):
        if number > self._takeout_high_water:
            self._takeout_high_water = number

    def _parse(self, raw: Any) -> Slot:
        if isinstance(raw, bool):
            raise SlotInvalid(raw, "not a slot identifier")

        if isinstance(raw, int):
            return slot_for_number(raw)

        if isinstance(raw, str):
            text = raw.strip()

            if text.isascii() and text.isdigit():
                return slot_for_number(int(text))

            match = _TAKEOUT_TAG.match(text)
            if match:
                return Takeout(int(match.group(1)))

        raise SlotInvalid(raw, "not a slot identifier")
