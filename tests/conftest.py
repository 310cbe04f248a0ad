"""Shared fixtures for the POS order core tests."""

from datetime import datetime, timedelta

import pytest

from admin_gate import AdminOverrideGate, StaticAdminCodeVerifier
from menu import MenuCatalog, MenuItem, PrintDestination
from order import OrderLifecycle
from pos_service import PosService
from printer import SimulatedPrinter
from reconciler import QuantityReconciler
from slots import DineIn, FloorPlan


ADMIN_CODE = "4321"


class FakeClock:
    """Manually advanced clock for token expiry tests."""

    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def coffee():
    return MenuItem("coffee", "Coffee", 60, "drinks", PrintDestination.BAR)


@pytest.fixture
def cake():
    return MenuItem("cake", "Cake", 150, "desserts", PrintDestination.KITCHEN)


@pytest.fixture
def catalog(coffee, cake):
    return MenuCatalog([
        coffee,
        cake,
        MenuItem("soup", "Soup", 90, "mains", available=False),
    ])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gate(clock):
    return AdminOverrideGate(StaticAdminCodeVerifier(ADMIN_CODE), ttl_seconds=300, clock=clock)


@pytest.fixture
def lifecycle():
    return OrderLifecycle(max_quantity_per_item=99, max_items_per_order=100)


@pytest.fixture
def reconciler(lifecycle):
    return QuantityReconciler(lifecycle)


@pytest.fixture
def order(lifecycle):
    return lifecycle.create(DineIn(5))


@pytest.fixture
def printer():
    return SimulatedPrinter()


@pytest.fixture
def service(catalog, gate, printer):
    return PosService(
        catalog=catalog,
        gate=gate,
        floor_plan=FloorPlan(),
        printer=printer,
    )
