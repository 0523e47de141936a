"""Catalog of picking strategies."""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

from app.services.picking.exceptions import InvalidStrategyError


class StrategyEfficiency(str, Enum):
    LOW = "low"
    HIGH = "high"
    VERY_HIGH = "very_high"


@dataclass(frozen=True)
class PickingStrategy:
    id: str
    name: str
    description: str
    max_orders: int
    requires_cart: bool
    efficiency: StrategyEfficiency
    # Multiplier applied to the duration estimate; lower is faster
    efficiency_modifier: float


PICKING_STRATEGIES: Dict[str, PickingStrategy] = {
    "SINGLE": PickingStrategy(
        id="SINGLE",
        name="Single order",
        description="One order at a time, suited to new pickers",
        max_orders=1,
        requires_cart=False,
        efficiency=StrategyEfficiency.LOW,
        efficiency_modifier=1.5,
    ),
    "BATCH": PickingStrategy(
        id="BATCH",
        name="Batch picking",
        description="Several orders grouped and walked by location",
        max_orders=20,
        requires_cart=True,
        efficiency=StrategyEfficiency.HIGH,
        efficiency_modifier=1.0,
    ),
    "WAVE": PickingStrategy(
        id="WAVE",
        name="Wave picking",
        description="Orders grouped by carrier departure slot",
        max_orders=50,
        requires_cart=True,
        efficiency=StrategyEfficiency.HIGH,
        efficiency_modifier=0.9,
    ),
    "ZONE": PickingStrategy(
        id="ZONE",
        name="Zone picking",
        description="Each picker covers dedicated zones",
        max_orders=30,
        requires_cart=True,
        efficiency=StrategyEfficiency.VERY_HIGH,
        efficiency_modifier=0.8,
    ),
    "CLUSTER": PickingStrategy(
        id="CLUSTER",
        name="Cluster picking",
        description="Orders grouped by similar products",
        max_orders=25,
        requires_cart=True,
        efficiency=StrategyEfficiency.VERY_HIGH,
        efficiency_modifier=0.85,
    ),
}


def resolve_strategy(strategy_id: str) -> PickingStrategy:
    """Look up a strategy by id, case-insensitively."""
    strategy = PICKING_STRATEGIES.get((strategy_id or "").upper())
    if strategy is None:
        raise InvalidStrategyError(strategy_id)
    return strategy


def list_strategies() -> List[PickingStrategy]:
    return list(PICKING_STRATEGIES.values())
