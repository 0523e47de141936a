"""
Pick route ordering.

Heuristic walk order, not a shortest-path solve: zone, then aisle, then rack
in serpentine order (even aisles ascending, odd aisles descending) so the
picker never has to double back inside an aisle.
"""
import math
import re
from typing import Iterable, List, Optional, Tuple

from app.schemas.picking import PickingListItemState
from app.services.picking.strategies import PickingStrategy

SECONDS_PER_ITEM = 15
SECONDS_PER_LOCATION = 20

_LEADING_INT = re.compile(r"\s*(\d+)")


def _leading_int(value: Optional[str]) -> int:
    """Numeric prefix of a slot segment ("03" -> 3, "12B" -> 12, "A1" -> 0)."""
    match = _LEADING_INT.match(value or "")
    return int(match.group(1)) if match else 0


def route_key(item: PickingListItemState) -> Tuple:
    location = item.location
    if not location.is_assigned:
        # Unlocated items come after every zone, at the end of the whole route
        return (1, "", "", 0, "", "", item.sku)

    rack = _leading_int(location.rack)
    if _leading_int(location.aisle) % 2 == 1:
        rack = -rack

    return (
        0,
        location.zone or "",
        location.aisle or "",
        rack,
        location.shelf or "",
        location.bin or "",
        item.sku,
    )


def optimize_route(items: Iterable[PickingListItemState]) -> List[PickingListItemState]:
    """Return the items in walk order with 1-based sequence numbers."""
    ordered = sorted(items, key=route_key)
    for index, item in enumerate(ordered):
        item.sequence = index + 1
    return ordered


def estimate_duration(items: List[PickingListItemState], strategy: PickingStrategy) -> int:
    """Advisory duration in minutes: handling time plus one walk per distinct slot."""
    total_items = sum(item.quantity for item in items)
    unique_locations = len({item.location.formatted for item in items})

    total_seconds = total_items * SECONDS_PER_ITEM + unique_locations * SECONDS_PER_LOCATION
    adjusted_seconds = math.floor(total_seconds * strategy.efficiency_modifier + 0.5)

    return math.ceil(adjusted_seconds / 60)
