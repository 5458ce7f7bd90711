"""
Unit tests for the backtesting core.

Tests cover:
- Commission calculation
- Trade id generation
- Position ledger algebra
- Portfolio order application
- Backtest engine simulation loop
- Configuration validation
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest
import structlog

from hft_backtester.backtesting import (
    BacktestConfig,
    BacktestEngine,
    CommissionCalculator,
    Order,
    PortfolioManager,
    Position,
    PricePoint,
    TradeDirection,
    TradeExecutor,
    TradeIdGenerator,
    apply_fill,
)
from hft_backtester.backtesting.engine import ms_to_datetime
from hft_backtester.exceptions import DataValidationError, InsufficientFundsError
from hft_backtester.strategies import Action, Signal, Strategy

T0 = datetime(2025, 9, 20, 14, 0, tzinfo=timezone.utc)
T0_MS = int(T0.timestamp() * 1000)
SYMBOL = "BTCUSDT"


class ScriptedStrategy(Strategy):
    """Replays a fixed list of actions and records every price it sees."""

    name = "scripted"

    def __init__(self, actions):
        self.actions = list(actions)
        self.seen = []

    def signal(self, price):
        self.seen.append(price)
        index = len(self.seen) - 1
        action = self.actions[index] if index < len(self.actions) else Action.HOLD
        return Signal(action, price)

    def reset(self):
        self.seen = []


def make_points(prices, step_ms=1000):
    return [PricePoint(time=T0_MS + i * step_ms, price=p) for i, p in enumerate(prices)]


def buy(quantity, price, when=T0):
    return Order(SYMBOL, quantity, price, TradeDirection.BUY, when)


def sell(quantity, price, when=T0):
    return Order(SYMBOL, quantity, price, TradeDirection.SELL, when)


class TestCommissionCalculator:
    """Test the CommissionCalculator class."""

    def test_single_leg(self):
        """Test commission is price * quantity * rate."""
        calc = CommissionCalculator(0.0005)

        assert calc.calculate_commission(10.0, 5.0) == pytest.approx(0.025)

    def test_round_trip_identity(self):
        """Test round-trip commission equals the sum of both legs."""
        calc = CommissionCalculator(0.0005)

        total = calc.calculate_total_commission(10.0, 12.5, 3.0)

        assert total == pytest.approx(
            calc.calculate_commission(10.0, 3.0) + calc.calculate_commission(12.5, 3.0)
        )

    def test_zero_rate(self):
        """Test a zero rate charges nothing."""
        assert CommissionCalculator(0.0).calculate_commission(100.0, 7.0) == 0.0

    def test_negative_rate_rejected(self):
        """Test negative rate raises error."""
        with pytest.raises(DataValidationError):
            CommissionCalculator(-0.001)


class TestTradeIdGenerator:
    """Test the TradeIdGenerator class."""

    def test_uses_clock_when_it_advances(self):
        """Test ids follow the clock when the clock moves forward."""
        ticks = iter([100, 200, 300])
        gen = TradeIdGenerator(clock=lambda: next(ticks))

        assert [gen.next_id() for _ in range(3)] == ["trade_100", "trade_200", "trade_300"]

    def test_same_tick_falls_back_to_increment(self):
        """Test ids stay unique when the clock does not advance."""
        gen = TradeIdGenerator(clock=lambda: 500)

        assert [gen.next_id() for _ in range(3)] == ["trade_500", "trade_501", "trade_502"]

    def test_clock_going_backwards(self):
        """Test a clock that jumps backwards never reissues an id."""
        ticks = iter([1000, 10, 2000])
        gen = TradeIdGenerator(clock=lambda: next(ticks))

        assert [gen.next_id() for _ in range(3)] == ["trade_1000", "trade_1001", "trade_2000"]
        assert gen.last_id == 2000

    def test_threaded_generation_is_unique(self):
        """Test ids are unique when generated from many threads at once."""
        gen = TradeIdGenerator(clock=lambda: 42)
        issued = []
        lock = threading.Lock()

        def worker():
            local = [gen.next_id() for _ in range(250)]
            with lock:
                issued.extend(local)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(issued) == 2000
        assert len(set(issued)) == 2000

    def test_generators_are_independent(self):
        """Test two generators do not share state."""
        a = TradeIdGenerator(clock=lambda: 7)
        b = TradeIdGenerator(clock=lambda: 7)

        a.next_id()
        a.next_id()

        assert b.next_id() == "trade_7"


class TestPositionLedger:
    """Test the apply_fill position algebra."""

    def test_open_long(self):
        """Test a buy with no position opens a long at the fill price."""
        pos = apply_fill(None, SYMBOL, 5.0, 10.0, T0, is_buy=True)

        assert pos.quantity == 5.0
        assert pos.avg_entry_price == 10.0
        assert pos.open_time == T0
        assert pos.is_long

    def test_open_short(self):
        """Test a sell with no position opens a short at the fill price."""
        pos = apply_fill(None, SYMBOL, 5.0, 10.0, T0, is_buy=False)

        assert pos.quantity == -5.0
        assert pos.avg_entry_price == 10.0
        assert pos.is_short

    def test_extend_long_blends_average(self):
        """Test adding to a long gives the quantity-weighted average."""
        pos = apply_fill(None, SYMBOL, 2.0, 10.0, T0, is_buy=True)
        pos = apply_fill(pos, SYMBOL, 6.0, 14.0, T0 + timedelta(seconds=1), is_buy=True)

        assert pos.quantity == 8.0
        assert pos.avg_entry_price == pytest.approx((10.0 * 2 + 14.0 * 6) / 8)
        assert pos.open_time == T0

    def test_extend_short_blends_average(self):
        """Test adding to a short blends by magnitude."""
        pos = apply_fill(None, SYMBOL, 5.0, 10.0, T0, is_buy=False)
        pos = apply_fill(pos, SYMBOL, 5.0, 12.0, T0, is_buy=False)

        assert pos.quantity == -10.0
        assert pos.avg_entry_price == pytest.approx(11.0)

    def test_average_is_order_independent(self):
        """Test two same-direction fills give the same average in either order."""
        first = apply_fill(None, SYMBOL, 3.0, 20.0, T0, is_buy=True)
        first = apply_fill(first, SYMBOL, 7.0, 30.0, T0, is_buy=True)

        second = apply_fill(None, SYMBOL, 7.0, 30.0, T0, is_buy=True)
        second = apply_fill(second, SYMBOL, 3.0, 20.0, T0, is_buy=True)

        assert first.avg_entry_price == pytest.approx(second.avg_entry_price)
        assert first.avg_entry_price == pytest.approx((20.0 * 3 + 30.0 * 7) / 10)

    def test_full_close_removes_position(self):
        """Test a fill equal and opposite to the position closes it."""
        pos = apply_fill(None, SYMBOL, 5.0, 10.0, T0, is_buy=True)

        assert apply_fill(pos, SYMBOL, 5.0, 12.0, T0, is_buy=False) is None

    def test_cover_short_removes_position(self):
        """Test buying back a whole short closes it."""
        pos = apply_fill(None, SYMBOL, 4.0, 10.0, T0, is_buy=False)

        assert apply_fill(pos, SYMBOL, 4.0, 9.0, T0, is_buy=True) is None

    def test_flip_long_to_short_resets_average(self):
        """Test overshooting a long opens a short at the fill price."""
        later = T0 + timedelta(minutes=5)
        pos = apply_fill(None, SYMBOL, 5.0, 10.0, T0, is_buy=True)
        pos = apply_fill(pos, SYMBOL, 8.0, 12.0, later, is_buy=False)

        assert pos.quantity == -3.0
        assert pos.avg_entry_price == 12.0
        assert pos.open_time == later

    def test_flip_short_to_long_resets_average(self):
        """Test overshooting a short opens a long at the fill price."""
        pos = apply_fill(None, SYMBOL, 2.0, 50.0, T0, is_buy=False)
        pos = apply_fill(pos, SYMBOL, 5.0, 40.0, T0, is_buy=True)

        assert pos.quantity == 3.0
        assert pos.avg_entry_price == 40.0

    def test_partial_reduction_rebases_at_fill_price(self):
        """Test reducing a long re-bases the remainder at the fill price."""
        pos = apply_fill(None, SYMBOL, 10.0, 10.0, T0, is_buy=True)
        pos = apply_fill(pos, SYMBOL, 4.0, 12.0, T0 + timedelta(seconds=1), is_buy=False)

        assert pos.quantity == 6.0
        assert pos.avg_entry_price == 12.0
        assert pos.open_time == T0

    def test_partial_cover_rebases_short(self):
        """Test buying back part of a short re-bases the remainder at the fill price."""
        pos = apply_fill(None, SYMBOL, 8.0, 20.0, T0, is_buy=False)
        pos = apply_fill(pos, SYMBOL, 3.0, 18.0, T0, is_buy=True)

        assert pos.quantity == -5.0
        assert pos.avg_entry_price == 18.0

    def test_input_position_is_not_mutated(self):
        """Test apply_fill returns a new position."""
        original = apply_fill(None, SYMBOL, 5.0, 10.0, T0, is_buy=True)
        apply_fill(original, SYMBOL, 5.0, 20.0, T0, is_buy=True)

        assert original.quantity == 5.0
        assert original.avg_entry_price == 10.0

    def test_non_positive_quantity_rejected(self):
        """Test zero and negative fill sizes raise error."""
        with pytest.raises(DataValidationError):
            apply_fill(None, SYMBOL, 0.0, 10.0, T0, is_buy=True)
        with pytest.raises(DataValidationError):
            apply_fill(None, SYMBOL, -1.0, 10.0, T0, is_buy=False)

    @pytest.mark.parametrize(
        "fills",
        [
            [(3, True), (2, True), (5, False)],
            [(4, False), (1, False), (2, True), (3, True)],
            [(1, True), (6, False), (2, True), (3, True), (1, True)],
            [(7, True), (7, False), (2, False), (2, True)],
        ],
    )
    def test_quantity_is_signed_sum_of_fills(self, fills):
        """Test quantity tracks the signed sum and is absent exactly at zero."""
        pos = None
        net = 0
        for i, (qty, is_buy) in enumerate(fills):
            pos = apply_fill(pos, SYMBOL, float(qty), 10.0 + i, T0, is_buy=is_buy)
            net += qty if is_buy else -qty

            if net == 0:
                assert pos is None
            else:
                assert pos is not None
                assert pos.quantity == net

    def test_position_valuation(self):
        """Test market value and unrealized P&L for long and short."""
        long_pos = Position(SYMBOL, 5.0, 10.0, T0)
        short_pos = Position(SYMBOL, -5.0, 10.0, T0)

        assert long_pos.market_value(12.0) == 60.0
        assert long_pos.unrealized_pnl(12.0) == 10.0
        assert short_pos.market_value(12.0) == -60.0
        assert short_pos.unrealized_pnl(12.0) == -10.0
        assert short_pos.cost_basis == 50.0


class TestPortfolioManager:
    """Test the PortfolioManager class."""

    def test_initialization(self):
        """Test portfolio starts with cash as equity and no positions."""
        manager = PortfolioManager(initial_cash=100.0, commission_rate=0.0005)
        portfolio = manager.get_portfolio()

        assert portfolio.cash == 100.0
        assert portfolio.equity == 100.0
        assert portfolio.positions == {}

    def test_buy_order(self):
        """Test BUY 5 @ 10 with 5bp commission leaves 49.975 cash."""
        manager = PortfolioManager(initial_cash=100.0, commission_rate=0.0005)

        trade = manager.execute_order(buy(5.0, 10.0))

        assert trade.direction == TradeDirection.BUY
        assert trade.quantity == 5.0
        assert trade.commission == pytest.approx(0.025)
        assert manager.get_portfolio().cash == pytest.approx(49.975)
        assert manager.get_position(SYMBOL).quantity == 5.0

    def test_sell_closes_long(self):
        """Test selling a whole long removes it and credits proceeds less commission."""
        manager = PortfolioManager(initial_cash=100.0, commission_rate=0.0005)
        manager.execute_order(buy(5.0, 10.0))
        cash_before = manager.get_portfolio().cash

        trade = manager.execute_order(sell(5.0, 12.0))

        assert trade.direction == TradeDirection.SELL
        assert SYMBOL not in manager.get_portfolio().positions
        assert manager.get_portfolio().cash - cash_before == pytest.approx(
            12.0 * 5 - CommissionCalculator(0.0005).calculate_commission(12.0, 5.0)
        )

    def test_partial_sell_rebases_long(self):
        """Test a partial sell leaves the remainder based at the sell price."""
        manager = PortfolioManager(initial_cash=1000.0, commission_rate=0.0)
        manager.execute_order(buy(10.0, 10.0))

        manager.execute_order(sell(4.0, 12.0))

        position = manager.get_position(SYMBOL)
        assert position.quantity == 6.0
        assert position.avg_entry_price == 12.0

    def test_fill_events_stay_off_stdout(self, capsys):
        """Test ledger debug events go through logging, not print."""
        assert structlog.is_configured()
        manager = PortfolioManager(initial_cash=100.0, commission_rate=0.0005)

        manager.execute_order(buy(5.0, 10.0))
        manager.execute_order(sell(5.0, 11.0))

        out = capsys.readouterr().out
        assert "order_executed" not in out
        assert "position_opened" not in out

    def test_insufficient_funds_leaves_state_unchanged(self):
        """Test an unaffordable buy raises and mutates nothing."""
        manager = PortfolioManager(initial_cash=100.0, commission_rate=0.0005)
        manager.execute_order(buy(5.0, 10.0))
        portfolio = manager.get_portfolio()
        cash_before = portfolio.cash
        positions_before = dict(portfolio.positions)

        with pytest.raises(InsufficientFundsError) as exc_info:
            manager.execute_order(buy(5.0, 10.0))

        assert exc_info.value.available == pytest.approx(49.975)
        assert exc_info.value.required == pytest.approx(50.025)
        assert portfolio.cash == cash_before
        assert portfolio.positions == positions_before

    def test_buy_for_exactly_available_cash(self):
        """Test a buy costing exactly the cash balance is accepted."""
        manager = PortfolioManager(initial_cash=100.0, commission_rate=0.0)

        manager.execute_order(buy(10.0, 10.0))

        assert manager.get_portfolio().cash == 0.0

    def test_cash_never_negative_after_buy(self):
        """Test repeated buys stop before cash goes negative."""
        manager = PortfolioManager(initial_cash=100.0, commission_rate=0.001)

        for _ in range(10):
            try:
                manager.execute_order(buy(1.5, 20.0))
            except InsufficientFundsError:
                pass
            assert manager.get_portfolio().cash >= 0

    def test_sell_without_position_opens_short(self):
        """Test selling while flat opens a short with no affordability check."""
        manager = PortfolioManager(initial_cash=10.0, commission_rate=0.0005)

        manager.execute_order(sell(5.0, 10.0))

        assert manager.get_position(SYMBOL).quantity == -5.0
        assert manager.get_portfolio().cash == pytest.approx(10.0 + 50.0 - 0.025)

    def test_update_equity_marks_positions(self):
        """Test equity is cash plus quantity times mark price."""
        manager = PortfolioManager(initial_cash=100.0, commission_rate=0.0005)
        manager.execute_order(buy(5.0, 10.0))

        equity = manager.update_equity({SYMBOL: 12.0})

        assert equity == pytest.approx(49.975 + 60.0)
        assert manager.get_portfolio().equity == equity

    def test_update_equity_skips_missing_prices(self):
        """Test positions without a mark contribute nothing to equity."""
        manager = PortfolioManager(initial_cash=100.0, commission_rate=0.0005)
        manager.execute_order(buy(5.0, 10.0))

        equity = manager.update_equity({"ETHUSDT": 2000.0})

        assert equity == pytest.approx(manager.get_portfolio().cash)

    def test_short_marks_negative(self):
        """Test a short position reduces equity when marked."""
        manager = PortfolioManager(initial_cash=100.0, commission_rate=0.0)
        manager.execute_order(sell(2.0, 10.0))

        assert manager.update_equity({SYMBOL: 11.0}) == pytest.approx(120.0 - 22.0)

    def test_trade_ids_come_from_injected_generator(self):
        """Test the manager stamps trades with the injected generator."""
        gen = TradeIdGenerator(clock=lambda: 1)
        manager = PortfolioManager(initial_cash=1000.0, commission_rate=0.0, id_generator=gen)

        first = manager.execute_order(buy(1.0, 10.0))
        second = manager.execute_order(buy(1.0, 10.0))

        assert first.trade_id == "trade_1"
        assert second.trade_id == "trade_2"

    def test_order_quantity_must_be_positive(self):
        """Test orders with non-positive quantity are rejected."""
        with pytest.raises(DataValidationError):
            buy(0.0, 10.0)


class TestTradeExecutor:
    """Test the TradeExecutor class."""

    def test_execute_trade_builds_record(self):
        """Test the executor computes commission and copies order fields."""
        executor = TradeExecutor(0.0005, TradeIdGenerator(clock=lambda: 99))

        trade = executor.execute_trade(sell(2.0, 25.0))

        assert trade.trade_id == "trade_99"
        assert trade.price == 25.0
        assert trade.quantity == 2.0
        assert not trade.is_buy
        assert trade.commission == pytest.approx(0.025)
        assert trade.total_cost == pytest.approx(50.0 - 0.025)

    def test_trade_is_immutable(self):
        """Test trade records cannot be modified."""
        trade = TradeExecutor(0.0).execute_trade(buy(1.0, 1.0))

        with pytest.raises(AttributeError):
            trade.price = 2.0

    def test_trade_to_dict(self):
        """Test trade serialization keys."""
        trade = TradeExecutor(0.0005).execute_trade(buy(5.0, 10.0))

        data = trade.to_dict()

        assert set(data) == {"id", "price", "qty", "time", "is_buy", "commission"}
        assert data["is_buy"] is True


class TestBacktestEngine:
    """Test the BacktestEngine class."""

    def test_engine_initialization(self):
        """Test engine uses default configuration."""
        engine = BacktestEngine()

        assert engine.config.initial_cash == 100.0
        assert engine.config.commission_rate == 0.0005
        assert engine.config.position_size == 50.0

    def test_default_behaviour_buys_every_sample(self):
        """Test no strategy buys each sample until cash runs out."""
        engine = BacktestEngine(BacktestConfig())

        result = engine.run(make_points([10.0, 10.0, 10.0]))

        assert len(result.trades) == 1
        assert result.trades[0].quantity == pytest.approx(5.0)
        assert result.final_cash == pytest.approx(49.975)
        assert [p.equity for p in result.equity_curve] == pytest.approx(
            [100.0, 99.975, 99.975]
        )

    def test_default_behaviour_keeps_buying_with_cash(self):
        """Test no strategy adds to the long while it can afford to."""
        engine = BacktestEngine(BacktestConfig(initial_cash=1000.0, commission_rate=0.0))

        result = engine.run(make_points([10.0, 20.0]))

        assert len(result.trades) == 2
        position = result.open_positions[SYMBOL]
        assert position.quantity == pytest.approx(7.5)
        assert position.avg_entry_price == pytest.approx(100.0 / 7.5)

    def test_hold_strategy_keeps_initial_cash(self):
        """Test a HOLD-only strategy never trades and ends at initial cash."""
        engine = BacktestEngine(BacktestConfig())
        strategy = ScriptedStrategy([])

        result = engine.run(make_points([10.0, 11.0, 12.0, 13.0]), strategy)

        assert result.trades == []
        assert result.final_equity == 100.0
        assert all(p.equity == 100.0 for p in result.equity_curve)

    def test_equity_curve_has_one_point_per_sample(self):
        """Test equity points follow input timestamps in order."""
        points = make_points([10.0, 10.5, 11.0])
        result = BacktestEngine().run(points, ScriptedStrategy([]))

        assert [p.time for p in result.equity_curve] == [p.time for p in points]

    def test_exit_signals_when_flat_do_nothing(self):
        """Test SELL, EXIT_LONG and EXIT_SHORT are ignored without a position."""
        strategy = ScriptedStrategy([Action.SELL, Action.EXIT_LONG, Action.EXIT_SHORT])

        result = BacktestEngine().run(make_points([10.0, 10.0, 10.0]), strategy)

        assert result.trades == []
        assert result.final_cash == 100.0
        assert result.open_positions == {}

    def test_buy_then_sell_round_trip(self):
        """Test a BUY followed by SELL opens and fully closes a long."""
        strategy = ScriptedStrategy([Action.BUY, Action.SELL])

        result = BacktestEngine().run(make_points([10.0, 12.0]), strategy)

        assert [t.direction for t in result.trades] == [TradeDirection.BUY, TradeDirection.SELL]
        assert result.trades[1].quantity == pytest.approx(5.0)
        assert result.open_positions == {}
        assert result.final_cash == pytest.approx(100.0 - 50.025 + 60.0 - 0.03)
        # Equity is marked before the order at each sample
        assert result.final_equity == pytest.approx(49.975 + 5.0 * 12.0)

    def test_exit_long_closes_position(self):
        """Test EXIT_LONG sells the whole long."""
        strategy = ScriptedStrategy([Action.BUY, Action.HOLD, Action.EXIT_LONG])

        result = BacktestEngine().run(make_points([10.0, 11.0, 11.0]), strategy)

        assert len(result.trades) == 2
        assert result.trades[1].direction == TradeDirection.SELL
        assert result.open_positions == {}

    def test_buy_ignored_when_already_long(self):
        """Test a second BUY does not add to an open long."""
        engine = BacktestEngine(BacktestConfig(initial_cash=1000.0))
        strategy = ScriptedStrategy([Action.BUY, Action.BUY, Action.BUY])

        result = engine.run(make_points([10.0, 10.0, 10.0]), strategy)

        assert len(result.trades) == 1

    def test_buy_requires_cash_for_budget(self):
        """Test BUY is not actionable when cash is below the position budget."""
        engine = BacktestEngine(BacktestConfig(initial_cash=40.0, position_size=50.0))

        result = engine.run(make_points([10.0]), ScriptedStrategy([Action.BUY]))

        assert result.trades == []

    def test_rejected_order_skips_sample(self):
        """Test an unaffordable buy is skipped and the run continues."""
        # Cash equals the budget, so commission makes the buy unaffordable
        engine = BacktestEngine(BacktestConfig(initial_cash=50.0, position_size=50.0))
        strategy = ScriptedStrategy([Action.BUY, Action.HOLD])

        result = engine.run(make_points([10.0, 10.0]), strategy)

        assert result.trades == []
        assert result.final_cash == 50.0
        assert len(result.equity_curve) == 2

    def test_strategy_queried_every_sample(self):
        """Test the strategy sees every price exactly once, in order."""
        strategy = ScriptedStrategy([Action.BUY])
        prices = [10.0, 9.0, 11.0, 12.0]

        BacktestEngine().run(make_points(prices), strategy)

        assert strategy.seen == prices

    def test_non_positive_price_never_orders(self):
        """Test a zero price produces no order but is still seen and marked."""
        strategy = ScriptedStrategy([Action.BUY, Action.BUY])

        result = BacktestEngine().run(make_points([0.0, 10.0]), strategy)

        assert strategy.seen == [0.0, 10.0]
        assert len(result.trades) == 1
        assert result.trades[0].price == 10.0
        assert len(result.equity_curve) == 2

    def test_exit_short_covers_short(self):
        """Test EXIT_SHORT builds a buy for the full short quantity."""
        engine = BacktestEngine()
        point = PricePoint(T0_MS, 10.0)

        order = engine._build_order(Action.EXIT_SHORT, point, current_qty=-3.0, cash=0.0)

        assert order.direction == TradeDirection.BUY
        assert order.quantity == 3.0

    def test_buy_actionable_when_short(self):
        """Test BUY is allowed while short when cash covers the budget."""
        engine = BacktestEngine()
        point = PricePoint(T0_MS, 10.0)

        order = engine._build_order(Action.BUY, point, current_qty=-3.0, cash=100.0)

        assert order.direction == TradeDirection.BUY
        assert order.quantity == pytest.approx(5.0)

    def test_hold_never_orders(self):
        """Test HOLD builds no order in any position state."""
        engine = BacktestEngine()
        point = PricePoint(T0_MS, 10.0)

        for qty in (-1.0, 0.0, 1.0):
            assert engine._build_order(Action.HOLD, point, current_qty=qty, cash=100.0) is None

    def test_order_timestamp_from_sample(self):
        """Test trades carry the sample time."""
        points = make_points([10.0])

        result = BacktestEngine().run(points)

        assert result.trades[0].timestamp == ms_to_datetime(points[0].time)

    def test_runs_do_not_share_portfolio(self):
        """Test running twice on one engine starts each run from scratch."""
        engine = BacktestEngine()
        points = make_points([10.0, 10.0])

        first = engine.run(points)
        second = engine.run(points)

        assert first.final_cash == pytest.approx(second.final_cash)
        assert len(first.trades) == len(second.trades)
        assert first.trades[0].trade_id != second.trades[0].trade_id

    def test_result_payload(self):
        """Test result serialization includes the echoed price data."""
        points = make_points([10.0, 11.0])

        result = BacktestEngine().run(points)
        data = result.to_dict()

        assert set(data) >= {"trades", "start_time", "end_time", "final_equity", "equity_curve"}
        assert data["price_data"] == [p.to_dict() for p in points]
        assert result.end_time >= result.start_time

    def test_price_data_can_be_omitted(self):
        """Test include_price_data=False drops the echoed series."""
        engine = BacktestEngine(BacktestConfig(include_price_data=False))

        result = engine.run(make_points([10.0]))

        assert result.price_data is None
        assert "price_data" not in result.to_dict()

    def test_empty_series(self):
        """Test an empty series produces an empty result at initial equity."""
        result = BacktestEngine().run([])

        assert result.trades == []
        assert result.equity_curve == []
        assert result.final_equity == 100.0
        assert result.max_drawdown() == 0.0

    def test_result_metrics(self):
        """Test total return, commissions and drawdown helpers."""
        strategy = ScriptedStrategy([Action.BUY, Action.HOLD, Action.SELL])

        result = BacktestEngine().run(make_points([10.0, 8.0, 12.0]), strategy)

        assert result.total_commission() == pytest.approx(0.025 + 0.03)
        assert result.total_return() == pytest.approx((result.final_equity - 100.0))
        assert result.max_drawdown() > 0
        assert "Total Trades" in result.summary()

    def test_trade_log_dataframe(self):
        """Test the trade log has one row per trade."""
        strategy = ScriptedStrategy([Action.BUY, Action.SELL])
        result = BacktestEngine().run(make_points([10.0, 12.0]), strategy)

        log = result.trade_log()

        assert len(log) == 2
        assert list(log["direction"]) == ["BUY", "SELL"]

    def test_run_multiple(self):
        """Test several strategies run on independent portfolios."""
        engine = BacktestEngine()
        points = make_points([10.0, 12.0])

        results = engine.run_multiple(
            points,
            {
                "hold": ScriptedStrategy([]),
                "round_trip": ScriptedStrategy([Action.BUY, Action.SELL]),
                "default": None,
            },
        )

        assert len(results["hold"].trades) == 0
        assert len(results["round_trip"].trades) == 2
        assert len(results["default"].trades) == 1


class TestBacktestConfig:
    """Test the BacktestConfig class."""

    def test_valid_config(self):
        """Test creating a valid configuration."""
        config = BacktestConfig(initial_cash=250.0, commission_rate=0.001, position_size=25.0)

        assert config.initial_cash == 250.0
        assert config.symbol == "BTCUSDT"

    def test_invalid_initial_cash(self):
        """Test invalid initial cash raises error."""
        with pytest.raises(DataValidationError):
            BacktestConfig(initial_cash=0.0)

    def test_invalid_position_size(self):
        """Test invalid position size raises error."""
        with pytest.raises(DataValidationError):
            BacktestConfig(position_size=-5.0)

    def test_invalid_commission_rate(self):
        """Test invalid commission rate raises error."""
        with pytest.raises(DataValidationError):
            BacktestConfig(commission_rate=-0.001)

    def test_from_percent_commission(self):
        """Test percent commission is converted to a fraction."""
        config = BacktestConfig.from_percent_commission(
            initial_cash=200.0, position_size=20.0, commission_pct=0.1
        )

        assert config.commission_rate == pytest.approx(0.001)
        assert config.initial_cash == 200.0
        assert config.position_size == 20.0

    def test_from_percent_commission_defaults(self):
        """Test non-positive request values fall back to defaults."""
        config = BacktestConfig.from_percent_commission(0.0, -1.0, 0.0)

        assert config.initial_cash == 100.0
        assert config.position_size == 50.0
        assert config.commission_rate == pytest.approx(0.0005)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
