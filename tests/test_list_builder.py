from types import SimpleNamespace
import uuid

from app.schemas.picking import ItemLocation
from app.services.picking.list_builder import build_picking_list
from app.services.picking.location_lookup import SqlInventoryLocationLookup


class FakeLookup:
    def __init__(self, locations):
        self.locations = locations
        self.calls = []

    async def resolve(self, db, warehouse_id, sku):
        self.calls.append(sku)
        return self.locations.get(sku)


def make_order(number, *lines):
    return SimpleNamespace(
        id=uuid.uuid4(),
        order_number=number,
        items=[
            SimpleNamespace(sku=sku, name=name or f"Product {sku}", quantity=quantity, barcode=barcode)
            for sku, quantity, barcode, name in lines
        ],
    )


async def test_aggregates_shared_sku_across_orders():
    first = make_order("SO-1", ("X", 2, None, None))
    second = make_order("SO-2", ("X", 3, "BC-X", None), ("Y", 1, None, None))
    lookup = FakeLookup({"X": ItemLocation(zone="A", formatted="A-01-01-1")})

    items = await build_picking_list(None, [first, second], uuid.uuid4(), lookup)

    by_sku = {item.sku: item for item in items}
    assert by_sku["X"].quantity == 5
    assert [(c.order_number, c.quantity) for c in by_sku["X"].orders] == [("SO-1", 2), ("SO-2", 3)]
    assert by_sku["X"].barcode == "BC-X"
    assert by_sku["X"].location.formatted == "A-01-01-1"
    assert by_sku["Y"].location.formatted == "UNASSIGNED"
    # One lookup per distinct SKU
    assert lookup.calls == ["X", "Y"]


async def test_repeated_sku_in_one_order_merges():
    order = make_order("SO-1", ("X", 2, None, None), ("X", 4, None, None))

    items = await build_picking_list(None, [order], uuid.uuid4(), FakeLookup({}))

    assert len(items) == 1
    assert items[0].quantity == 6
    assert len(items[0].orders) == 1
    assert items[0].orders[0].quantity == 6


async def test_missing_sku_falls_back_to_name():
    order = make_order("SO-1", (None, 1, None, "Gift wrap"))

    items = await build_picking_list(None, [order], uuid.uuid4(), FakeLookup({}))

    assert items[0].sku == "Gift wrap"


async def test_first_barcode_wins():
    first = make_order("SO-1", ("X", 1, "BC-1", None))
    second = make_order("SO-2", ("X", 1, "BC-2", None))

    items = await build_picking_list(None, [first, second], uuid.uuid4(), FakeLookup({}))

    assert items[0].barcode == "BC-1"


async def test_sql_lookup_picks_fullest_slot(session_factory, seed, warehouse_id):
    await seed.location("X", "A", "01", "01", "1", quantity=3)
    await seed.location("X", "B", "04", "02", "3", bin="C", quantity=40)

    async with session_factory() as db:
        location = await SqlInventoryLocationLookup().resolve(db, warehouse_id, "X")
        missing = await SqlInventoryLocationLookup().resolve(db, warehouse_id, "NOPE")

    assert location.formatted == "B-04-02-3-C"
    assert location.available_quantity == 40
    assert missing is None
