#!/usr/bin/env python3
"""
信号计算器测试
最近买入 @110 (2024-01-01)，主入场目标 5%，钱包止盈价 121
"""

import unittest
from datetime import date
from decimal import Decimal

from stock_wallets.data.models import HistoricalClose, PriceSnapshot
from stock_wallets.trading.calculators.signal_calculator import (
    SignalCalculator, calculate_lbd_price, effective_price, primary_entry_target
)
from stock_wallets.trading.models.asset import Asset, EntryTarget
from stock_wallets.trading.models.signals import SignalBand
from stock_wallets.trading.models.transaction import Transaction, TransactionType
from stock_wallets.trading.models.wallet import Wallet

CLOSES = ["100", "104", "110", "108", "105", "103"]


def make_snapshot(current, closes=CLOSES):
    history = [HistoricalClose(date=f"2024-01-{i + 2:02d}", close=Decimal(c)) for i, c in enumerate(closes)]
    return PriceSnapshot(symbol="AAPL", current_price=Decimal(current) if current is not None else None,
                         historical_closes=history)


class TestSignalCalculator(unittest.TestCase):

    def setUp(self):
        self.calc = SignalCalculator()
        self.asset = Asset(symbol="AAPL", id=1)
        self.buy = Transaction(id=1, asset_id=1, transaction_type=TransactionType.BUY,
                               transaction_date="2024-01-01", signal="INITIAL",
                               price="110", investment="1100")
        self.entry_targets = [
            EntryTarget(asset_id=1, target_percent="10", sort_order=1, id=2),
            EntryTarget(asset_id=1, target_percent="5", sort_order=0, id=1),
        ]
        self.wallets = [
            Wallet(asset_id=1, price="110", profit_target_id=1, shares="10", investment="1100",
                   profit_target_price="121"),
        ]

    def _calculate(self, snapshot, today=date(2024, 1, 10), asset=None):
        return self.calc.calculate(asset or self.asset, [self.buy], self.wallets,
                                   self.entry_targets, snapshot, today)

    def test_primary_entry_target_is_first_by_sort_order(self):
        self.assertEqual(primary_entry_target(self.entry_targets).id, 1)
        self.assertIsNone(primary_entry_target([]))

    def test_pullback_from_last_buy(self):
        signals = self._calculate(make_snapshot("100"))

        self.assertEqual(signals.current_price, Decimal('100'))
        self.assertFalse(signals.is_test_price)
        self.assertEqual(signals.last_buy_price, Decimal('110'))
        self.assertEqual(signals.pullback_percent, Decimal('-9.0909'))
        self.assertTrue(signals.pullback_triggered)
        self.assertEqual(signals.entry_target_percent, Decimal('5'))

    def test_pullback_not_triggered_above_threshold(self):
        signals = self._calculate(make_snapshot("106"))
        self.assertFalse(signals.pullback_triggered)

    def test_n_day_change_and_dip(self):
        signals = self._calculate(make_snapshot("100"))

        self.assertEqual(signals.days_since_last_buy, 9)
        self.assertEqual(signals.n_day_change_percent, Decimal('-3.8462'))
        self.assertEqual(signals.n_day_dip_percent, Decimal('-9.0909'))

    def test_n_day_values_hidden_after_recent_buy(self):
        signals = self._calculate(make_snapshot("100"), today=date(2024, 1, 4))

        self.assertEqual(signals.days_since_last_buy, 3)
        self.assertIsNone(signals.n_day_change_percent)
        self.assertIsNone(signals.n_day_dip_percent)
        self.assertEqual(signals.pullback_percent, Decimal('-9.0909'))

    def test_n_day_dip_without_hits(self):
        self.assertIsNone(self.calc.n_day_dip(Decimal('106'), [Decimal(c) for c in CLOSES], 5, Decimal('5')))

    def test_n_day_change_needs_enough_history(self):
        self.assertIsNone(self.calc.n_day_change(Decimal('100'), [Decimal('101')], 5))

    def test_n_day_dip_skips_zero_closes(self):
        closes = [Decimal('0'), Decimal('120'), Decimal('0')]
        self.assertEqual(self.calc.n_day_dip(Decimal('108'), closes, 5, Decimal('5')), Decimal('-10'))

    def test_lbd_price(self):
        signals = self._calculate(make_snapshot("100"))
        self.assertEqual(signals.lbd_price, Decimal('104.5'))
        self.assertEqual(calculate_lbd_price(Decimal('110'), Decimal('-5')), Decimal('104.5'))

    def test_lbd_price_prefers_snapshot_on_buy(self):
        self.buy.entry_target_price = Decimal('100')
        signals = self._calculate(make_snapshot("100"))
        self.assertEqual(signals.lbd_price, Decimal('100'))

    def test_days_since_bands(self):
        self.assertEqual(self.calc.days_since_band(None), SignalBand.DEFAULT)
        self.assertEqual(self.calc.days_since_band(24), SignalBand.DEFAULT)
        self.assertEqual(self.calc.days_since_band(25), SignalBand.YELLOW)
        self.assertEqual(self.calc.days_since_band(30), SignalBand.YELLOW)
        self.assertEqual(self.calc.days_since_band(31), SignalBand.RED)

        signals = self._calculate(make_snapshot("100"), today=date(2024, 2, 1))
        self.assertEqual(signals.days_since_last_buy, 31)
        self.assertEqual(signals.days_since_band, SignalBand.RED)

    def test_pct_to_profit_target(self):
        signals = self._calculate(make_snapshot("100"))
        self.assertEqual(signals.min_profit_target_price, Decimal('121'))
        self.assertEqual(signals.pct_to_profit_target, Decimal('-17.3554'))
        self.assertFalse(signals.profit_target_hit)
        self.assertEqual(signals.pct_to_target_band, SignalBand.DEFAULT)

        signals = self._calculate(make_snapshot("125"))
        self.assertTrue(signals.profit_target_hit)
        self.assertEqual(signals.pct_to_target_band, SignalBand.GREEN)

        signals = self._calculate(make_snapshot("120"))
        self.assertFalse(signals.profit_target_hit)
        self.assertEqual(signals.pct_to_target_band, SignalBand.YELLOW)

    def test_uses_lowest_wallet_target(self):
        self.wallets.append(Wallet(asset_id=1, price="100", profit_target_id=1, shares="1",
                                   investment="100", profit_target_price="110"))
        signals = self._calculate(make_snapshot("110"))
        self.assertEqual(signals.min_profit_target_price, Decimal('110'))
        self.assertTrue(signals.profit_target_hit)

    def test_test_price_fallback(self):
        asset = Asset(symbol="AAPL", id=1, test_price="99")

        self.assertEqual(effective_price(None, asset), (Decimal('99'), True))
        self.assertEqual(effective_price(make_snapshot("0"), asset), (Decimal('99'), True))
        self.assertEqual(effective_price(make_snapshot(None), asset), (Decimal('99'), True))
        self.assertEqual(effective_price(make_snapshot("101"), asset), (Decimal('101'), False))

        signals = self._calculate(None, asset=asset)
        self.assertEqual(signals.current_price, Decimal('99'))
        self.assertTrue(signals.is_test_price)
        self.assertIsNone(signals.n_day_change_percent)

    def test_no_price_available(self):
        signals = self._calculate(None)

        self.assertFalse(signals.has_price)
        self.assertIsNone(signals.pullback_percent)
        self.assertIsNone(signals.pct_to_profit_target)
        self.assertEqual(signals.days_since_last_buy, 9)
        self.assertEqual(signals.lbd_price, Decimal('104.5'))

    def test_asset_without_buys(self):
        signals = self.calc.calculate(self.asset, [], [], self.entry_targets, make_snapshot("100"),
                                      date(2024, 1, 10))
        self.assertIsNone(signals.last_buy_price)
        self.assertIsNone(signals.days_since_last_buy)
        self.assertEqual(signals.days_since_band, SignalBand.DEFAULT)
        self.assertEqual(signals.n_day_change_percent, Decimal('-3.8462'))


if __name__ == '__main__':
    unittest.main()
