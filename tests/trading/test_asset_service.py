#!/usr/bin/env python3
"""
资产配置服务测试：资产、目标、年度预算与止盈目标删除策略
"""

import unittest
from decimal import Decimal

from stock_wallets.data.models import PriceSnapshot
from stock_wallets.data.price_cache import PriceCache
from stock_wallets.data.storage import SQLiteStorage
from stock_wallets.trading.config import TargetDeletionPolicy
from stock_wallets.trading.exceptions import NotFoundError, ValidationError
from stock_wallets.trading.models.asset import AssetStatus
from stock_wallets.trading.services.asset_service import AssetService
from stock_wallets.trading.services.transaction_service import TransactionService


class TestAssets(unittest.TestCase):

    def setUp(self):
        self.storage = SQLiteStorage(":memory:")
        self.cache = PriceCache(ttl_seconds=300)
        self.assets = AssetService(self.storage, price_cache=self.cache)
        self.service = TransactionService(self.storage)

    def tearDown(self):
        self.storage.close()

    def test_symbol_is_unique_and_normalized(self):
        asset = self.assets.create_asset(" aapl ", name="Apple")
        self.assertEqual(asset.symbol, "AAPL")
        self.assertEqual(self.assets.find_asset("aapl").id, asset.id)

        with self.assertRaises(ValidationError):
            self.assets.create_asset("AAPL")

    def test_invalid_asset_fields(self):
        with self.assertRaises(ValidationError):
            self.assets.create_asset("")
        with self.assertRaises(ValidationError):
            self.assets.create_asset("X" * 21)
        with self.assertRaises(ValidationError):
            self.assets.create_asset("AAPL", commission="11")
        with self.assertRaises(ValidationError):
            self.assets.create_asset("AAPL", test_price="-1")

    def test_list_assets_by_status(self):
        self.assets.create_asset("MSFT")
        hidden = self.assets.create_asset("AAPL")
        self.assets.set_status(hidden.id, AssetStatus.HIDDEN)

        self.assertEqual([a.symbol for a in self.assets.list_assets()], ["AAPL", "MSFT"])
        self.assertEqual([a.symbol for a in self.assets.list_assets(AssetStatus.ACTIVE)], ["MSFT"])
        self.assertEqual(self.assets.get_asset(hidden.id).status, AssetStatus.HIDDEN)

    def test_rename_to_existing_symbol_rejected(self):
        self.assets.create_asset("MSFT")
        asset = self.assets.create_asset("AAPL")
        with self.assertRaises(ValidationError):
            self.assets.update_asset(asset.id, symbol="msft")
        with self.assertRaises(ValidationError):
            self.assets.update_asset(asset.id, sector="tech")

    def test_delete_asset(self):
        asset = self.assets.create_asset("AAPL")
        self.assets.add_entry_target(asset.id, "5")
        self.assets.delete_asset(asset.id)

        with self.assertRaises(NotFoundError):
            self.assets.get_asset(asset.id)
        self.assertEqual(self.assets.list_entry_targets(asset.id), [])

    def test_delete_asset_with_transactions_rejected(self):
        asset = self.assets.create_asset("AAPL")
        self.service.record_buy(asset.id, "10", "100", "2024-01-02", "INITIAL")

        with self.assertRaises(ValidationError):
            self.assets.delete_asset(asset.id)
        self.assertEqual(self.assets.get_asset(asset.id).symbol, "AAPL")

    def test_test_price_invalidates_cache(self):
        asset = self.assets.create_asset("AAPL")
        self.cache.put(PriceSnapshot(symbol="AAPL", current_price=Decimal('180')))
        self.assertIn("AAPL", self.cache)

        updated = self.assets.set_test_price(asset.id, "175.5")

        self.assertEqual(updated.test_price, Decimal('175.5'))
        self.assertNotIn("AAPL", self.cache)

    def test_entry_targets_ordering(self):
        asset = self.assets.create_asset("AAPL")
        first = self.assets.add_entry_target(asset.id, "5")
        second = self.assets.add_entry_target(asset.id, "-10")

        targets = self.assets.list_entry_targets(asset.id)
        self.assertEqual([t.id for t in targets], [first.id, second.id])
        self.assertEqual(second.sort_order, 1)
        self.assertEqual(second.target_percent, Decimal('10'))

        self.assets.update_entry_target(second.id, sort_order=-1)
        self.assertEqual(self.assets.list_entry_targets(asset.id)[0].id, second.id)

        self.assets.delete_entry_target(first.id)
        self.assertEqual(len(self.assets.list_entry_targets(asset.id)), 1)

    def test_yearly_budget_upsert(self):
        asset = self.assets.create_asset("AAPL")
        self.assets.set_yearly_budget(asset.id, 2024, "1000")
        self.assets.set_yearly_budget(asset.id, 2024, "1500")
        self.assets.set_yearly_budget(asset.id, 2025, "2000")

        budgets = self.assets.list_yearly_budgets(asset.id)
        self.assertEqual([(b.year, b.amount) for b in budgets],
                         [(2024, Decimal('1500')), (2025, Decimal('2000'))])

        self.assertTrue(self.assets.delete_yearly_budget(asset.id, 2024))
        self.assertIsNone(self.assets.get_yearly_budget(asset.id, 2024))
        self.assertFalse(self.assets.delete_yearly_budget(asset.id, 2024))

    def test_negative_budget_rejected(self):
        asset = self.assets.create_asset("AAPL")
        with self.assertRaises(ValidationError):
            self.assets.set_yearly_budget(asset.id, 2024, "-1")


class TestProfitTargets(unittest.TestCase):

    def setUp(self):
        self.storage = SQLiteStorage(":memory:")
        self.assets = AssetService(self.storage)
        self.service = TransactionService(self.storage)

        self.asset = self.assets.create_asset("AAPL")
        self.pt10 = self.assets.add_profit_target(self.asset.id, "10")
        self.pt20 = self.assets.add_profit_target(self.asset.id, "20")
        self.pt30 = self.assets.add_profit_target(self.asset.id, "30")

    def tearDown(self):
        self.storage.close()

    def _buy(self):
        return self.service.record_buy(self.asset.id, "10", "1000", "2024-01-02", "INITIAL",
                                       percentages={self.pt10.id: 50, self.pt20.id: 50})

    def _wallet_for(self, target_id):
        wallets = [w for w in self.service.get_wallets(self.asset.id) if w.profit_target_id == target_id]
        return wallets[0] if wallets else None

    def test_invalid_profit_target(self):
        with self.assertRaises(ValidationError):
            self.assets.add_profit_target(self.asset.id, "0")
        with self.assertRaises(ValidationError):
            self.assets.add_profit_target(self.asset.id, "10", allocation_percent="120")
        with self.assertRaises(NotFoundError):
            self.assets.add_profit_target(9999, "10")

    def test_delete_target_without_wallets(self):
        self._buy()
        self.assets.delete_profit_target(self.pt30.id)

        self.assertEqual([t.id for t in self.assets.list_profit_targets(self.asset.id)],
                         [self.pt10.id, self.pt20.id])

    def test_block_policy_keeps_target_with_wallets(self):
        self._buy()
        with self.assertRaises(ValidationError):
            self.assets.delete_profit_target(self.pt10.id, TargetDeletionPolicy.BLOCK)

        self.assertEqual(self.assets.get_profit_target(self.pt10.id).id, self.pt10.id)
        self.assertIsNotNone(self._wallet_for(self.pt10.id))

    def test_redistribute_moves_wallets_evenly(self):
        buy = self._buy()

        self.assets.delete_profit_target(self.pt10.id, TargetDeletionPolicy.REDISTRIBUTE)

        with self.assertRaises(NotFoundError):
            self.assets.get_profit_target(self.pt10.id)
        self.assertIsNone(self._wallet_for(self.pt10.id))

        w20 = self._wallet_for(self.pt20.id)
        self.assertEqual(w20.investment, Decimal('750'))
        self.assertEqual(w20.shares, Decimal('75'))
        w30 = self._wallet_for(self.pt30.id)
        self.assertEqual(w30.investment, Decimal('250'))
        self.assertEqual(w30.profit_target_price, Decimal('13'))

        allocations = {a.profit_target_id: a for a in self.service.get_allocations(buy.id)}
        self.assertEqual(set(allocations), {self.pt20.id, self.pt30.id})
        self.assertEqual(allocations[self.pt20.id].percentage, Decimal('75'))
        self.assertEqual(allocations[self.pt30.id].wallet_id, w30.id)
        self.assertTrue(self.service.rebuilder.verify(self.asset.id))

        # 转移后的买入仍可正常删除
        self.service.delete_transaction(buy.id)
        self.assertEqual(self.service.get_wallets(self.asset.id), [])

    def test_redistribute_refused_when_sells_reference_target(self):
        self._buy()
        wallet = self._wallet_for(self.pt10.id)
        self.service.record_sell(self.asset.id, wallet.id, "12", "10", "2024-01-05", "TP")

        with self.assertRaises(ValidationError):
            self.assets.delete_profit_target(self.pt10.id, TargetDeletionPolicy.REDISTRIBUTE)
        self.assertEqual(self._wallet_for(self.pt10.id).shares, Decimal('40'))

    def test_redistribute_refused_for_only_target(self):
        asset = self.assets.create_asset("MSFT")
        pt = self.assets.add_profit_target(asset.id, "10")
        self.service.record_buy(asset.id, "10", "100", "2024-01-02", "INITIAL", percentages={pt.id: 100})

        with self.assertRaises(ValidationError):
            self.assets.delete_profit_target(pt.id, TargetDeletionPolicy.REDISTRIBUTE)

    def test_commission_change_recomputes_target_prices(self):
        self._buy()
        self.assets.update_asset(self.asset.id, commission="1")

        self.assertEqual(self._wallet_for(self.pt10.id).profit_target_price, Decimal('11.11111'))
        self.assertEqual(self._wallet_for(self.pt20.id).profit_target_price, Decimal('12.12121'))

    def test_target_percent_change_recomputes_target_prices(self):
        self._buy()
        self.assets.update_profit_target(self.pt10.id, target_percent="15")

        self.assertEqual(self._wallet_for(self.pt10.id).profit_target_price, Decimal('11.5'))
        self.assertEqual(self._wallet_for(self.pt20.id).profit_target_price, Decimal('12'))


if __name__ == '__main__':
    unittest.main()
