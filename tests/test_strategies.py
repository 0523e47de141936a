import pytest

from app.services.picking.exceptions import InvalidStrategyError
from app.services.picking.strategies import list_strategies, resolve_strategy


def test_catalog_order_and_capacity():
    strategies = list_strategies()
    assert [s.id for s in strategies] == ["SINGLE", "BATCH", "WAVE", "ZONE", "CLUSTER"]
    assert {s.id: s.max_orders for s in strategies} == {
        "SINGLE": 1, "BATCH": 20, "WAVE": 50, "ZONE": 30, "CLUSTER": 25,
    }


def test_single_needs_no_cart():
    assert resolve_strategy("SINGLE").requires_cart is False
    assert all(s.requires_cart for s in list_strategies() if s.id != "SINGLE")


def test_resolve_is_case_insensitive():
    assert resolve_strategy("batch").id == "BATCH"
    assert resolve_strategy("Zone").efficiency_modifier == 0.8


@pytest.mark.parametrize("strategy_id", ["", "PIGGYBACK", None])
def test_unknown_strategy(strategy_id):
    with pytest.raises(InvalidStrategyError) as exc:
        resolve_strategy(strategy_id)
    assert exc.value.code == "INVALID_STRATEGY"
