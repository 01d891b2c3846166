#!/usr/bin/env python3
"""
钱包股数与投资额运算测试
非整除的价格与金额下：分配股数之和、拆股后的一致性、补录交易与重放结果一致
"""

import unittest
from decimal import Decimal

from stock_wallets.data.storage import SQLiteStorage
from stock_wallets.trading.config import TradingConfig
from stock_wallets.trading.models.wallet import LotBalance, Wallet, cost_of_shares, shares_for_investment
from stock_wallets.trading.services.asset_service import AssetService
from stock_wallets.trading.services.transaction_service import TransactionService


class TestLotBalance(unittest.TestCase):

    def test_buy_adds_rounded_shares(self):
        wallet = Wallet(asset_id=1, price="7", profit_target_id=None, shares="0", investment="0")
        wallet.add_investment(Decimal('333'))
        wallet.add_investment(Decimal('99.99'))

        self.assertEqual(wallet.shares, Decimal('47.57143') + Decimal('14.28429'))
        self.assertEqual(wallet.investment, Decimal('432.99'))

    def test_sell_then_undo_restores_wallet(self):
        wallet = Wallet(asset_id=1, price="7", profit_target_id=None, shares="47.57143", investment="333")
        wallet.remove_quantity(Decimal('1.33333'))
        self.assertEqual(wallet.investment, Decimal('333') - Decimal('9.33331'))

        wallet.add_quantity(Decimal('1.33333'))
        self.assertEqual(wallet.shares, Decimal('47.57143'))
        self.assertEqual(wallet.investment, Decimal('333'))

    def test_split_keeps_investment(self):
        wallet = Wallet(asset_id=1, price="3.5", profit_target_id=None, shares="1457.14286", investment="5100")
        wallet.apply_split(Decimal('3'))

        self.assertEqual(wallet.price, Decimal('1.166667'))
        self.assertEqual(wallet.shares, Decimal('4371.42858'))
        self.assertEqual(wallet.investment, Decimal('5100'))
        self.assertTrue(wallet.is_consistent(Decimal('0.0001')))

    def test_inconsistent_wallet_detected(self):
        wallet = Wallet(asset_id=1, price="7", profit_target_id=None, shares="47.6", investment="333")
        self.assertFalse(wallet.is_consistent(Decimal('0.0001')))

    def test_helpers(self):
        self.assertEqual(shares_for_investment(Decimal('1000'), Decimal('7')), Decimal('142.85714'))
        self.assertEqual(cost_of_shares(Decimal('0.00001'), Decimal('1.166667')), Decimal('0.000012'))
        self.assertTrue(issubclass(Wallet, LotBalance))


class TestWalletArithmetic(unittest.TestCase):

    def setUp(self):
        self.storage = SQLiteStorage(":memory:")
        self.config = TradingConfig(verify_after_mutation=True)
        self.assets = AssetService(self.storage, self.config)
        self.service = TransactionService(self.storage, self.config)

        self.asset = self.assets.create_asset("KO")
        self.pt1 = self.assets.add_profit_target(self.asset.id, "5")
        self.pt2 = self.assets.add_profit_target(self.asset.id, "10")
        self.pt3 = self.assets.add_profit_target(self.asset.id, "15")

    def tearDown(self):
        self.storage.close()

    def _wallets(self):
        return self.service.get_wallets(self.asset.id)

    def _only_wallet(self):
        wallets = self._wallets()
        self.assertEqual(len(wallets), 1)
        return wallets[0]

    def _assert_consistent(self):
        for wallet in self._wallets():
            self.assertTrue(wallet.is_consistent(self.config.consistency_epsilon), str(wallet))
        self.assertTrue(self.service.rebuilder.verify(self.asset.id))

    def test_allocation_shares_sum_to_total(self):
        """$1000 @ $7，指定 33.33%，其余两个目标各 33.335%"""
        buy = self.service.record_buy(self.asset.id, "7", "1000", "2024-01-02", "INITIAL",
                                      percentages={self.pt1.id: "33.33"})

        allocations = self.service.get_allocations(buy.id)
        self.assertEqual(len(allocations), 3)
        self.assertEqual(sum(a.percentage for a in allocations), Decimal('100'))

        allocated = sum(a.shares for a in allocations)
        self.assertLessEqual(abs(allocated - Decimal('1000') / Decimal('7')), Decimal('0.00002'))
        self.assertEqual(sum(w.shares for w in self._wallets()), allocated)
        self._assert_consistent()

    def test_float_percentages_keep_six_places(self):
        targets = self.assets.list_profit_targets(self.asset.id)
        plan = self.service.allocation_engine.plan(7.0, 1000.0, targets, {self.pt1.id: 33.33333})

        by_target = {line.profit_target_id: line.percentage for line in plan.lines}
        self.assertEqual(by_target[self.pt1.id], Decimal('33.33333'))
        self.assertEqual(plan.total_percentage, Decimal('100'))

    def test_split_with_uneven_price_stays_consistent(self):
        """$5100 @ $3.5 后 1:3 拆股，每次变更后校验"""
        self.service.record_buy(self.asset.id, "3.5", "5100", "2024-01-02", "INITIAL",
                                percentages={self.pt1.id: 100})

        self.service.record_split(self.asset.id, "3", "2024-02-01")

        wallet = self._only_wallet()
        self.assertEqual(wallet.price, Decimal('1.166667'))
        self.assertEqual(wallet.shares, Decimal('4371.42858'))
        self.assertEqual(wallet.investment, Decimal('5100'))
        self._assert_consistent()

    def test_back_dated_buy_matches_replay(self):
        """1月买入、3月卖出、再补录2月买入：存储的钱包与按日期重放一致"""
        self.service.record_buy(self.asset.id, "7", "333", "2024-01-02", "INITIAL",
                                percentages={self.pt1.id: 100})
        wallet = self._only_wallet()
        self.service.record_sell(self.asset.id, wallet.id, "8", "1.33333", "2024-03-01", "TP")
        self.service.record_buy(self.asset.id, "7", "99.99", "2024-02-01", "CUSTOM",
                                percentages={self.pt1.id: 100})

        wallet = self._only_wallet()
        self.assertEqual(wallet.shares, Decimal('60.52239'))
        self._assert_consistent()

        sell = self.service.record_sell(self.asset.id, wallet.id, "8", "60.52239", "2024-03-05", "TP")

        self.assertEqual(self._wallets(), [])
        self.assertEqual(sell.cost_basis, Decimal('423.65673'))
        self.assertTrue(self.service.rebuilder.verify(self.asset.id))

    def test_every_mutation_keeps_wallets_consistent(self):
        steps = [
            ("buy", lambda: self.service.record_buy(
                self.asset.id, "7", "333", "2024-01-02", "INITIAL", percentages={self.pt1.id: 100})),
            ("merge", lambda: self.service.record_buy(
                self.asset.id, "7", "99.99", "2024-01-03", "REPULL", percentages={self.pt1.id: 100})),
            ("sell", lambda: self.service.record_sell(
                self.asset.id, self._only_wallet().id, "8", "1.33333", "2024-01-05", "TP")),
            ("split", lambda: self.service.record_split(self.asset.id, "3", "2024-01-10")),
            ("sell after split", lambda: self.service.record_sell(
                self.asset.id, self._only_wallet().id, "3", "7.77777", "2024-01-12", "TP")),
        ]
        recorded = []
        for name, step in steps:
            with self.subTest(step=name):
                recorded.append(step())
                self._assert_consistent()

        with self.subTest(step="reverse sell"):
            self.service.delete_transaction(recorded[-1].id)
            self._assert_consistent()

        with self.subTest(step="reverse merged buy"):
            self.service.delete_transaction(recorded[1].id)
            self._assert_consistent()
            self.assertEqual(self._only_wallet().investment, Decimal('333') - Decimal('9.33331'))


if __name__ == '__main__':
    unittest.main()
