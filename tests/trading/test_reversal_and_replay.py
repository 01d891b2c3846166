#!/usr/bin/env python3
"""
编辑/删除交易与日志重放测试
"""

import unittest
from decimal import Decimal

from stock_wallets.data.storage import SQLiteStorage, StorageConfig
from stock_wallets.trading.config import TradingConfig
from stock_wallets.trading.exceptions import ConsistencyViolation, NotFoundError, ValidationError
from stock_wallets.trading.services.asset_service import AssetService
from stock_wallets.trading.services.transaction_service import TransactionService

T = StorageConfig.Tables


class TestReversalAndReplay(unittest.TestCase):

    def setUp(self):
        self.storage = SQLiteStorage(":memory:")
        self.config = TradingConfig(verify_after_mutation=True)
        self.assets = AssetService(self.storage, self.config)
        self.service = TransactionService(self.storage, self.config)

        self.asset = self.assets.create_asset("AAPL")
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

    # =================== 编辑买入 ===================

    def test_edit_buy_investment_keeps_percentages(self):
        self.service.update_transaction(self.buy.id, {'investment': '2000'})

        for target in (self.pt10, self.pt20):
            wallet = self._wallet_for(target.id)
            self.assertEqual(wallet.shares, Decimal('100'))
            self.assertEqual(wallet.investment, Decimal('1000'))
        self.assertEqual(len(self.service.get_allocations(self.buy.id)), 2)

    def test_edit_buy_price_moves_wallets(self):
        self.service.update_transaction(self.buy.id, {'price': '8'})

        wallets = self.service.get_wallets(self.asset.id)
        self.assertEqual({w.price for w in wallets}, {Decimal('8')})
        self.assertEqual(self._wallet_for(self.pt10.id).profit_target_price, Decimal('8.8'))
        self.assertEqual(self._wallet_for(self.pt20.id).profit_target_price, Decimal('9.6'))
        self.assertEqual(self._wallet_for(self.pt10.id).shares, Decimal('62.5'))

    def test_edit_buy_with_new_percentages(self):
        self.service.update_transaction(self.buy.id, {}, percentages={self.pt10.id: 100})

        self.assertIsNone(self._wallet_for(self.pt20.id))
        self.assertEqual(self._wallet_for(self.pt10.id).investment, Decimal('1000'))

    def test_edit_rejects_fields_of_other_types(self):
        with self.assertRaises(ValidationError):
            self.service.update_transaction(self.buy.id, {'quantity': '5'})

    def test_edit_buy_with_sold_shares_rolls_back(self):
        wallet = self._wallet_for(self.pt10.id)
        self.service.record_sell(self.asset.id, wallet.id, "12", "30", "2024-01-05", "TP")

        with self.assertRaises(ValidationError):
            self.service.update_transaction(self.buy.id, {'investment': '100'})

        self.assertEqual(self.service.get_transaction(self.buy.id).investment, Decimal('1000'))
        self.assertEqual(self._wallet_for(self.pt10.id).shares, Decimal('20'))
        self.assertEqual(len(self.service.get_allocations(self.buy.id)), 2)

    # =================== 删除 ===================

    def test_delete_buy_with_sold_shares_rejected(self):
        wallet = self._wallet_for(self.pt10.id)
        self.service.record_sell(self.asset.id, wallet.id, "12", "30", "2024-01-05", "TP")

        with self.assertRaises(ValidationError):
            self.service.delete_transaction(self.buy.id)
        self.assertEqual(len(self.service.list_transactions(self.asset.id)), 2)

    def test_delete_buy_after_wallet_closed_rejected(self):
        wallet = self._wallet_for(self.pt10.id)
        self.service.record_sell(self.asset.id, wallet.id, "12", "50", "2024-01-05", "TP")

        with self.assertRaises(ValidationError):
            self.service.delete_transaction(self.buy.id)

    def test_delete_sell_restores_wallet(self):
        wallet = self._wallet_for(self.pt10.id)
        sell = self.service.record_sell(self.asset.id, wallet.id, "12", "30", "2024-01-05", "TP")

        self.service.delete_transaction(sell.id)

        restored = self._wallet_for(self.pt10.id)
        self.assertEqual(restored.id, wallet.id)
        self.assertEqual(restored.shares, Decimal('50'))
        self.assertEqual(restored.investment, Decimal('500'))

    def test_delete_sell_recreates_closed_wallet(self):
        wallet = self._wallet_for(self.pt10.id)
        sell = self.service.record_sell(self.asset.id, wallet.id, "12", "50", "2024-01-05", "TP")
        self.assertIsNone(self._wallet_for(self.pt10.id))

        self.service.delete_transaction(sell.id)

        restored = self._wallet_for(self.pt10.id)
        self.assertEqual(restored.shares, Decimal('50'))
        self.assertEqual(restored.profit_target_price, Decimal('11'))

        # 分配记录跟随重建后的钱包，买入仍可删除
        self.service.delete_transaction(self.buy.id)
        self.assertEqual(self.service.get_wallets(self.asset.id), [])

    def test_edit_sell_quantity(self):
        wallet = self._wallet_for(self.pt10.id)
        sell = self.service.record_sell(self.asset.id, wallet.id, "12", "30", "2024-01-05", "TP")

        updated = self.service.update_transaction(sell.id, {'quantity': '40'})

        self.assertEqual(updated.cost_basis, Decimal('400'))
        self.assertEqual(updated.amount, Decimal('480'))
        self.assertEqual(self._wallet_for(self.pt10.id).shares, Decimal('10'))

    def test_edit_sell_moves_to_other_wallet(self):
        w10 = self._wallet_for(self.pt10.id)
        w20 = self._wallet_for(self.pt20.id)
        sell = self.service.record_sell(self.asset.id, w10.id, "12", "30", "2024-01-05", "TP")

        updated = self.service.update_transaction(sell.id, {'wallet_id': w20.id})

        self.assertEqual(updated.wallet_id, w20.id)
        self.assertEqual(updated.profit_target_id, self.pt20.id)
        self.assertEqual(self._wallet_for(self.pt10.id).shares, Decimal('50'))
        self.assertEqual(self._wallet_for(self.pt20.id).shares, Decimal('20'))

    def test_edit_dividend_amount(self):
        dividend = self.service.record_dividend(self.asset.id, "12.5", "2024-02-01")
        updated = self.service.update_transaction(dividend.id, {'amount': '15'})

        self.assertEqual(updated.amount, Decimal('15'))
        self.assertEqual(self.service.get_transaction(dividend.id).amount, Decimal('15'))

    def test_delete_missing_transaction(self):
        with self.assertRaises(NotFoundError):
            self.service.delete_transaction(9999)

    def test_delete_all_transactions(self):
        self.service.record_dividend(self.asset.id, "5", "2024-02-01")

        deleted = self.service.delete_all_transactions(self.asset.id)

        self.assertEqual(deleted, 2)
        self.assertEqual(self.service.list_transactions(self.asset.id), [])
        self.assertEqual(self.service.get_wallets(self.asset.id), [])
        self.assertEqual(self.storage.count(T.TRANSACTION_ALLOCATIONS), 0)

    # =================== 重放与校验 ===================

    def test_back_dated_buy_merges_into_existing_wallet(self):
        self.service.record_buy(self.asset.id, "10", "500", "2024-01-01", "CUSTOM",
                                percentages={self.pt10.id: 100})

        self.assertEqual(self._wallet_for(self.pt10.id).investment, Decimal('1000'))
        self.assertTrue(self.service.rebuilder.verify(self.asset.id))

    def test_replay_matches_stored_wallets(self):
        wallet = self._wallet_for(self.pt20.id)
        self.service.record_buy(self.asset.id, "9", "900", "2024-01-03", "REPULL",
                                percentages={self.pt10.id: 50, self.pt20.id: 50})
        self.service.record_sell(self.asset.id, wallet.id, "12.5", "25", "2024-01-04", "TP")

        result = self.service.rebuilder.replay(self.asset.id)
        stored = self.service.wallet_store.by_key(self.asset.id)

        self.assertEqual(set(result.wallets), set(stored))
        for key, replayed in result.wallets.items():
            self.assertEqual(replayed.shares, stored[key].shares)
        self.assertTrue(self.service.rebuilder.verify(self.asset.id))

    def test_verify_detects_divergent_wallet(self):
        wallet = self._wallet_for(self.pt10.id)
        self.storage.update(T.WALLETS, wallet.id, {'shares': Decimal('49')})

        with self.assertRaises(ConsistencyViolation):
            self.service.rebuilder.verify(self.asset.id)

    def test_verify_detects_missing_wallet(self):
        wallet = self._wallet_for(self.pt10.id)
        self.storage.delete(T.WALLETS, wallet.id)

        with self.assertRaises(ConsistencyViolation) as ctx:
            self.service.rebuilder.verify(self.asset.id)
        self.assertIn('missing', ctx.exception.context)

    def test_rebuild_repairs_wallets_and_keeps_ids(self):
        w10 = self._wallet_for(self.pt10.id)
        self.storage.update(T.WALLETS, w10.id, {'shares': Decimal('1'), 'investment': Decimal('10')})

        rebuilt = self.service.rebuilder.rebuild_from_log(self.asset.id)

        self.assertEqual(len(rebuilt), 2)
        repaired = self._wallet_for(self.pt10.id)
        self.assertEqual(repaired.id, w10.id)
        self.assertEqual(repaired.shares, Decimal('50'))
        self.assertTrue(self.service.rebuilder.verify(self.asset.id))


if __name__ == '__main__':
    unittest.main()
