"""
Tests for the bet ledger and per-number aggregation
Run with: pytest tests/test_aggregation.py -v
"""

import pytest

from bookie.core.lottery_config import LotteryConfig
from bookie.core.syntax import parse_bets
from bookie.services.aggregation import AggregationEngine, aggregate, build_grid_cells
from bookie.services.ledger import (
    SOURCE_DIRECT,
    BetLedger,
    HistoryEntry,
    inbox_source,
)


def ledger_with(*inputs, lottery_type="2D", source=SOURCE_DIRECT):
    ledger = BetLedger()
    for text in inputs:
        ledger.add_entry(parse_bets(text, lottery_type), source, text)
    return ledger


def assert_breakdown_consistent(engine):
    agg = engine.current()
    for number, total in agg.totals.items():
        assert sum(b.amount for b in agg.breakdown[number]) == pytest.approx(total)


class TestLedger:
    """Test ledger entries and mutations"""

    def test_add_entry_links_bets(self):
        ledger = BetLedger()
        entry = ledger.add_entry(parse_bets("12r 100", "2D"), SOURCE_DIRECT, "12r 100")

        assert len(ledger) == 1
        assert entry.input == "12r 100"
        assert [b.number for b in entry.bets] == ["12", "21"]
        assert all(b.history_entry_id == entry.id for b in entry.bets)
        assert all(b.source == "Direct" for b in entry.bets)
        assert len({b.id for b in entry.bets}) == 2

    def test_empty_bets_not_recorded(self):
        ledger = BetLedger()
        assert ledger.add_entry([], SOURCE_DIRECT, "hello") is None
        assert len(ledger) == 0
        assert ledger.version == 0

    def test_version_bumps_and_notifies(self):
        ledger = BetLedger()
        seen = []
        ledger.subscribe(lambda l: seen.append(l.version))

        entry = ledger.add_entry(parse_bets("12 100", "2D"), SOURCE_DIRECT, "12 100")
        ledger.delete_entry(entry.id)

        assert seen == [1, 2]

    def test_delete_bet_keeps_rest_of_entry(self):
        ledger = ledger_with("12r 100")
        entry = ledger.entries[0]

        removed = ledger.delete_bet(entry.bets[0].id)

        assert removed.number == "12"
        assert [b.number for b in ledger.entries[0].bets] == ["21"]

    def test_delete_last_bet_drops_entry(self):
        ledger = ledger_with("12 100")
        ledger.delete_bet(ledger.entries[0].bets[0].id)
        assert len(ledger) == 0

    def test_unknown_ids(self):
        ledger = ledger_with("12 100")
        assert ledger.delete_entry("nope") is False
        assert ledger.delete_bet("nope") is None
        assert ledger.version == 1

    def test_undo_and_pop(self):
        ledger = ledger_with("12 100", "34 200")
        first = ledger.entries[0]

        assert ledger.undo_last().input == "34 200"
        assert ledger.pop_entry(first.id).input == "12 100"
        assert ledger.undo_last() is None

    def test_iter_bets_chronological(self):
        ledger = ledger_with("12 100", "34 200", "12 50")
        assert [(b.number, b.amount) for b in ledger.iter_bets()] == [
            ("12", 100.0), ("34", 200.0), ("12", 50.0),
        ]

    def test_serialisation_roundtrip_keeps_ids(self):
        ledger = ledger_with("12r 100", "apu 5", source=inbox_source("Alice"))
        restored = BetLedger.from_list(ledger.to_list())

        assert [e.id for e in restored] == [e.id for e in ledger]
        assert list(restored.iter_bets()) == list(ledger.iter_bets())

    def test_from_dict_tolerates_epoch_millis(self):
        entry = HistoryEntry.from_dict({
            "id": "1", "input": "12 100", "timestamp": 1760000000000,
            "bets": [{"id": "b", "amount": 100, "source": "Direct", "number": "12"}],
        })
        assert entry.timestamp.year == 2025
        assert entry.bets[0].history_entry_id == "1"

    def test_from_list_ignores_garbage(self):
        assert len(BetLedger.from_list("not a list")) == 0
        assert len(BetLedger.from_list([1, None, {"input": "x"}])) == 1


class TestAggregate:
    """Test totals and breakdowns"""

    def test_totals_and_breakdown(self):
        ledger = ledger_with("12 100", "12r 100", "34 25")
        agg = aggregate(ledger.iter_bets())

        assert agg.totals == {"12": 150.0, "21": 50.0, "34": 25.0}
        assert [b.amount for b in agg.breakdown["12"]] == [100.0, 50.0]
        assert agg.total_amount == 225.0

    def test_engine_cache_invalidated_by_mutation(self):
        ledger = ledger_with("12 100")
        engine = AggregationEngine(ledger)
        first = engine.current()

        assert engine.current() is first
        ledger.add_entry(parse_bets("12 50", "2D"), SOURCE_DIRECT, "12 50")
        assert engine.current() is not first
        assert engine.total("12") == 150.0

    def test_breakdown_sums_after_every_mutation(self):
        ledger = ledger_with("12r 100", "apu 50", "12 30")
        engine = AggregationEngine(ledger)
        assert_breakdown_consistent(engine)

        ledger.delete_bet(ledger.entries[0].bets[1].id)
        assert_breakdown_consistent(engine)

        ledger.delete_entry(ledger.entries[1].id)
        assert_breakdown_consistent(engine)

        ledger.undo_last()
        assert_breakdown_consistent(engine)
        assert engine.totals == {"12": 50.0}


class TestGridCells:
    """Test dense 2D and sparse 3D grids"""

    def test_dense_2d_grid(self):
        agg = aggregate(ledger_with("12 1500").iter_bets())
        cells = build_grid_cells(LotteryConfig.two_digit(), agg.totals, agg.breakdown, {}, 1000)

        assert len(cells) == 100
        assert [c.number for c in cells[:3]] == ["00", "01", "02"]
        cell = cells[12]
        assert cell.number == "12"
        assert cell.over_limit_amount == 500.0
        assert cell.is_over_limit
        assert not cells[0].is_over_limit

    def test_custom_limit_on_cell(self):
        agg = aggregate(ledger_with("12 1500").iter_bets())
        cells = build_grid_cells(LotteryConfig.two_digit(), agg.totals, agg.breakdown, {"12": 2000}, 1000)

        assert cells[12].limit == 2000
        assert cells[12].has_custom_limit
        assert not cells[12].is_over_limit

    def test_sparse_3d_grid(self):
        agg = aggregate(ledger_with("500 10", "123 20", lottery_type="3D").iter_bets())
        cells = build_grid_cells(
            LotteryConfig.three_digit(), agg.totals, agg.breakdown, {"999": 50}, 1000
        )

        assert [c.number for c in cells] == ["123", "500", "999"]
        assert cells[2].amount == 0.0
        assert cells[2].has_custom_limit

    def test_bets_string(self):
        agg = aggregate(ledger_with("12 100", "12r 100").iter_bets())
        cells = build_grid_cells(LotteryConfig.two_digit(), agg.totals, agg.breakdown, {}, 1000)
        assert cells[12].bets_string == "100+50"
