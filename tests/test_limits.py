"""
Tests for limits, over-limit exposure and the acknowledged/held sub-ledgers
Run with: pytest tests/test_limits.py -v
"""

import pytest

from bookie.core.lottery_config import LotteryConfig
from bookie.core.syntax import parse_bets
from bookie.services.aggregation import AggregationEngine
from bookie.services.ledger import SOURCE_DIRECT, BetLedger
from bookie.services.limits import ExposureItem, LimitEngine


def make_engine(default_limit=1000, lottery_type="2D"):
    ledger = BetLedger()
    engine = LimitEngine(
        LotteryConfig.for_type(lottery_type), AggregationEngine(ledger), default_limit
    )
    return ledger, engine


def bet(ledger, text, lottery_type="2D"):
    return ledger.add_entry(parse_bets(text, lottery_type), SOURCE_DIRECT, text)


def assert_invariant(engine):
    for number in set(engine.acknowledged) | set(engine.held):
        over = engine.over_limit_amount(number)
        ack = engine.acknowledged.get(number, 0.0)
        held = engine.held.get(number, 0.0)
        assert ack + held <= over + 1e-9, number
        assert ack > 0 or number not in engine.acknowledged
        assert held > 0 or number not in engine.held


class TestLimitResolution:
    """Test default and custom limits"""

    def test_default_limit(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300")

        assert engine.limit("25") == 1000
        assert engine.over_limit_amount("25") == 300
        assert engine.over_limit_amount("26") == 0

    def test_group_limit(self):
        ledger, engine = make_engine(1000)
        engine.add_group("apu", 200)
        bet(ledger, "55 500")

        assert engine.limit("55") == 200
        assert engine.limit("56") == 1000
        assert engine.over_limit_amount("55") == 300

    def test_groups_inserted_at_front(self):
        _, engine = make_engine()
        first = engine.add_group("apu", 200)
        second = engine.add_group("12r", 300)
        assert [g.id for g in engine.groups] == [second.id, first.id]

    def test_overlapping_groups_resolved_in_list_order(self):
        _, engine = make_engine()
        engine.add_group("12r", 500)
        engine.add_group("12", 300)

        # "12" sits in front, so "12r" is applied last and decides
        assert engine.limit("12") == 500
        assert engine.limit("21") == 500

    def test_group_expansion_fixed_at_creation(self):
        _, engine = make_engine()
        group = engine.add_group("5t", 100)
        assert group.numbers == [f"5{d}" for d in range(10)]
        assert group.name == "5t"

    @pytest.mark.parametrize("name,amount", [("apu", -1), ("zzz", 100), ("", 100)])
    def test_rejected_groups(self, name, amount):
        _, engine = make_engine()
        assert engine.add_group(name, amount) is None
        assert engine.groups == []


class TestExposureLists:
    """Test forwardable, held and displayed lists"""

    def test_forwardable_items(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300\n12 900\n34 1500")

        assert engine.forwardable_items() == [ExposureItem("25", 300.0), ExposureItem("34", 500.0)]

    def test_acknowledge_snapshots_current_over(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300")
        engine.acknowledge(["25"])

        assert engine.acknowledged == {"25": 300.0}
        assert engine.forwardable_items() == []

        bet(ledger, "25 200")
        assert engine.forwardable("25") == 200.0
        engine.acknowledge(["25"])
        assert engine.acknowledged == {"25": 500.0}

    def test_displayed_includes_held(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300")
        engine.hold("25")

        assert engine.forwardable_items() == []
        assert engine.held_items() == [ExposureItem("25", 300.0)]
        assert engine.displayed_over_limit_items() == [ExposureItem("25", 300.0)]

    def test_over_limit_cells(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300\n12 100")
        assert [c.number for c in engine.over_limit_cells()] == ["25"]


class TestHolding:
    """Test hold, release, sticky hold and held->acknowledged"""

    def test_hold_moves_forwardable(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300")

        assert engine.hold("25") == 300.0
        assert engine.held == {"25": 300.0}
        assert "25" in engine.sticky_held

    def test_hold_without_exposure_is_noop(self):
        _, engine = make_engine(1000)
        assert engine.hold("25") == 0.0
        assert engine.sticky_held == set()

    def test_sticky_hold_captures_new_excess(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300")
        engine.hold("25")

        bet(ledger, "25 250")

        assert engine.held == {"25": 550.0}
        assert engine.forwardable("25") == 0.0

    def test_release(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300")
        engine.hold("25")
        engine.release("25")

        assert engine.held == {}
        assert engine.sticky_held == set()
        assert engine.forwardable("25") == 300.0

        bet(ledger, "25 100")
        assert engine.held == {}

    def test_convert_held_is_additive(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300")
        engine.acknowledge(["25"])
        bet(ledger, "25 200")
        engine.hold("25")

        engine.convert_held_to_acknowledged(["25"])

        assert engine.acknowledged == {"25": 500.0}
        assert engine.held == {}

    def test_acknowledge_absorbs_held(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300")
        engine.hold("25")
        bet(ledger, "12 1100")
        engine.acknowledge(["25", "12"])

        assert engine.acknowledged == {"25": 300.0, "12": 100.0}
        assert engine.held == {}
        assert engine.displayed_over_limit_items() == []
        assert_invariant(engine)

    def test_acknowledged_sticky_number_only_holds_new_excess(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300")
        engine.hold("25")
        engine.acknowledge(["25"])

        bet(ledger, "25 50")

        assert engine.acknowledged == {"25": 300.0}
        assert engine.held == {"25": 50.0}
        assert_invariant(engine)


class TestSanitation:
    """acknowledged + held never exceed the over-limit amount"""

    def test_after_entry_deletion(self):
        ledger, engine = make_engine(1000)
        first = bet(ledger, "25 1300")
        bet(ledger, "25 200")
        engine.acknowledge(["25"])

        ledger.delete_entry(first.id)

        assert engine.acknowledged == {}
        assert_invariant(engine)

    def test_after_partial_deletion(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300")
        second = bet(ledger, "25 200")
        engine.acknowledge(["25"])

        ledger.delete_bet(second.bets[0].id)

        assert engine.acknowledged == {"25": 300.0}
        assert_invariant(engine)

    def test_after_limit_raise(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300")
        engine.hold("25")

        engine.add_group("25", 1200)

        assert engine.held == {"25": 100.0}
        assert_invariant(engine)

    def test_after_default_limit_raise(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300\n34 1600")
        engine.acknowledge(["25", "34"])

        engine.set_default_limit(1400)

        assert engine.acknowledged == {"34": 200.0}
        assert_invariant(engine)

    def test_after_batch_change(self):
        ledger, engine = make_engine(5000)
        group = engine.add_group("apu", 100)
        bet(ledger, "55 400")
        engine.hold("55")
        assert engine.held == {"55": 300.0}

        engine.apply_batch_change("add", 250)

        assert group.amount == 350
        assert engine.held == {"55": 50.0}
        assert_invariant(engine)

    def test_acknowledged_clamped_before_held(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300")
        engine.acknowledge(["25"])
        bet(ledger, "25 200")
        engine.hold("25")
        engine.release("25")
        engine.hold("25")

        engine.set_default_limit(1100)

        # over is now 400: acknowledged keeps its 300, held gets the rest
        assert engine.acknowledged == {"25": 300.0}
        assert engine.held == {"25": 100.0}
        assert_invariant(engine)

    def test_after_clear(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300")
        engine.hold("25")
        ledger.clear()

        assert engine.held == {}
        assert_invariant(engine)


class TestLimitManagement:
    """Test group edits and batch changes"""

    def test_update_and_remove(self):
        ledger, engine = make_engine(1000)
        group = engine.add_group("25", 500)
        bet(ledger, "25 800")
        assert engine.over_limit_amount("25") == 300

        assert engine.update_group_amount(group.id, 700)
        assert engine.over_limit_amount("25") == 100

        assert engine.remove_group(group.id)
        assert engine.over_limit_amount("25") == 0
        assert not engine.remove_group(group.id)

    def test_toggle(self):
        _, engine = make_engine()
        group = engine.add_group("apu", 100)
        assert engine.toggle_group(group.id)
        assert group.is_open
        assert not engine.toggle_group("missing")

    @pytest.mark.parametrize("kind,value,expected", [
        ("add", 100, [400.0, 600.0]),
        ("sub", 350, [0.0, 150.0]),
        ("set", 0, [0.0, 0.0]),
        ("set", 250, [250.0, 250.0]),
    ])
    def test_batch_change(self, kind, value, expected):
        _, engine = make_engine()
        engine.add_group("apu", 500)
        engine.add_group("12r", 300)

        assert engine.apply_batch_change(kind, value)
        assert [g.amount for g in engine.groups] == expected

    @pytest.mark.parametrize("kind,value", [("add", 0), ("sub", 0), ("set", -1), ("mul", 5)])
    def test_batch_change_rejected(self, kind, value):
        _, engine = make_engine()
        engine.add_group("apu", 500)

        assert not engine.apply_batch_change(kind, value)
        assert engine.groups[0].amount == 500

    def test_negative_default_limit_rejected(self):
        _, engine = make_engine(1000)
        assert not engine.set_default_limit(-5)
        assert engine.default_limit == 1000

    def test_clear_groups(self):
        _, engine = make_engine()
        engine.add_group("apu", 500)
        engine.clear_groups()
        assert engine.groups == []
        assert engine.custom_limits() == {}

    def test_state_dict_pairs(self):
        ledger, engine = make_engine(1000)
        bet(ledger, "25 1300\n34 1100")
        engine.hold("25")
        engine.acknowledge(["34"])

        state = engine.state_dict()

        assert state["held"] == [["25", 300.0]]
        assert state["acknowledged"] == [["34", 100.0]]
        assert state["sticky_held"] == ["25"]
