#!/usr/bin/env python3
"""
拆股测试：钱包重键、日志重建与拆股前交易的限制
"""

import unittest
from decimal import Decimal

from stock_wallets.data.storage import SQLiteStorage
from stock_wallets.trading.exceptions import ValidationError
from stock_wallets.trading.services.asset_service import AssetService
from stock_wallets.trading.services.transaction_service import TransactionService


class TestSplits(unittest.TestCase):

    def setUp(self):
        self.storage = SQLiteStorage(":memory:")
        self.assets = AssetService(self.storage)
        self.service = TransactionService(self.storage)

        self.asset = self.assets.create_asset("NVDA")
        self.pt10 = self.assets.add_profit_target(self.asset.id, "10")
        self.pt20 = self.assets.add_profit_target(self.asset.id, "20")
        self.buy = self.service.record_buy(
            self.asset.id, "10", "1000", "2024-01-02", "INITIAL",
            percentages={self.pt10.id: 50, self.pt20.id: 50},
        )

    def tearDown(self):
        self.storage.close()

    def _wallet_for(self, target_id):
        wallets = [w for w in self.service.get_wallets(self.asset.id) if w.profit_target_id == target_id]
        return wallets[0] if wallets else None

    def test_split_rekeys_wallets(self):
        self.service.record_split(self.asset.id, "2", "2024-01-10")

        wallet = self._wallet_for(self.pt10.id)
        self.assertEqual(wallet.price, Decimal('5'))
        self.assertEqual(wallet.shares, Decimal('100'))
        self.assertEqual(wallet.investment, Decimal('500'))
        self.assertEqual(wallet.profit_target_price, Decimal('5.5'))
        self.assertEqual(self._wallet_for(self.pt20.id).profit_target_price, Decimal('6'))

        allocations = self.service.get_allocations(self.buy.id)
        current_ids = {w.id for w in self.service.get_wallets(self.asset.id)}
        self.assertEqual({a.wallet_id for a in allocations}, current_ids)
        self.assertTrue(self.service.rebuilder.verify(self.asset.id))

    def test_sell_after_split(self):
        self.service.record_split(self.asset.id, "2", "2024-01-10")
        wallet = self._wallet_for(self.pt10.id)

        sell = self.service.record_sell(self.asset.id, wallet.id, "6", "40", "2024-01-15", "TP")

        self.assertEqual(sell.cost_basis, Decimal('200'))
        self.assertEqual(sell.realized_pnl, Decimal('40'))
        self.assertEqual(self._wallet_for(self.pt10.id).shares, Decimal('60'))

    def test_sell_dated_before_split_rejected(self):
        self.service.record_split(self.asset.id, "2", "2024-01-10")
        wallet = self._wallet_for(self.pt10.id)

        with self.assertRaises(ValidationError):
            self.service.record_sell(self.asset.id, wallet.id, "11", "10", "2024-01-05", "TP")

        self.assertEqual(self._wallet_for(self.pt10.id).shares, Decimal('100'))

    def test_split_after_partial_sell(self):
        wallet = self._wallet_for(self.pt10.id)
        self.service.record_sell(self.asset.id, wallet.id, "11", "10", "2024-01-05", "TP")

        self.service.record_split(self.asset.id, "2", "2024-01-10")

        rekeyed = self._wallet_for(self.pt10.id)
        self.assertEqual(rekeyed.shares, Decimal('80'))
        self.assertEqual(rekeyed.investment, Decimal('400'))

    def test_back_dated_buy_goes_through_rebuild(self):
        self.service.record_split(self.asset.id, "2", "2024-01-10")

        buy = self.service.record_buy(self.asset.id, "10", "300", "2024-01-05", "CUSTOM",
                                      percentages={self.pt10.id: 100})

        wallet = self._wallet_for(self.pt10.id)
        self.assertEqual(wallet.price, Decimal('5'))
        self.assertEqual(wallet.shares, Decimal('160'))
        self.assertEqual(wallet.investment, Decimal('800'))
        self.assertEqual([a.wallet_id for a in self.service.get_allocations(buy.id)], [wallet.id])

    def test_edit_buy_before_split(self):
        self.service.record_split(self.asset.id, "2", "2024-01-10")

        self.service.update_transaction(self.buy.id, {'investment': '2000'})

        self.assertEqual(self._wallet_for(self.pt10.id).shares, Decimal('200'))
        self.assertEqual(self._wallet_for(self.pt20.id).investment, Decimal('1000'))

    def test_edit_before_split_that_breaks_later_sell_rolls_back(self):
        self.service.record_split(self.asset.id, "2", "2024-01-10")
        wallet = self._wallet_for(self.pt10.id)
        self.service.record_sell(self.asset.id, wallet.id, "6", "90", "2024-01-15", "TP")

        with self.assertRaises(ValidationError):
            self.service.update_transaction(self.buy.id, {'investment': '500'})

        self.assertEqual(self.service.get_transaction(self.buy.id).investment, Decimal('1000'))
        self.assertEqual(self._wallet_for(self.pt10.id).shares, Decimal('10'))

    def test_edit_split_ratio(self):
        split = self.service.record_split(self.asset.id, "2", "2024-01-10")

        self.service.update_transaction(split.id, {'split_ratio': '4'})

        wallet = self._wallet_for(self.pt10.id)
        self.assertEqual(wallet.price, Decimal('2.5'))
        self.assertEqual(wallet.shares, Decimal('200'))

    def test_delete_split_restores_prices(self):
        split = self.service.record_split(self.asset.id, "2", "2024-01-10")

        self.service.delete_transaction(split.id)

        wallet = self._wallet_for(self.pt10.id)
        self.assertEqual(wallet.price, Decimal('10'))
        self.assertEqual(wallet.shares, Decimal('50'))
        self.assertEqual(wallet.profit_target_price, Decimal('11'))

    def test_split_merges_colliding_keys(self):
        asset = self.assets.create_asset("TSLA")
        pt = self.assets.add_profit_target(asset.id, "10")
        self.service.record_buy(asset.id, "10.000001", "500", "2024-01-02", "INITIAL", percentages={pt.id: 100})
        self.service.record_buy(asset.id, "10.000002", "500", "2024-01-03", "REPULL", percentages={pt.id: 100})
        self.assertEqual(len(self.service.get_wallets(asset.id)), 2)

        self.service.record_split(asset.id, "2", "2024-01-10")

        wallets = self.service.get_wallets(asset.id)
        self.assertEqual(len(wallets), 1)
        self.assertEqual(wallets[0].price, Decimal('5.000001'))
        self.assertEqual(wallets[0].investment, Decimal('1000'))

    def test_non_positive_ratio_rejected(self):
        with self.assertRaises(ValidationError):
            self.service.record_split(self.asset.id, "0", "2024-01-10")


if __name__ == '__main__':
    unittest.main()
