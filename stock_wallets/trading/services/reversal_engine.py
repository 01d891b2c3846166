#!/usr/bin/env python3
"""
撤销引擎
编辑或删除交易前，先把该交易对钱包的影响完全撤销

- BUY：每条分配从其钱包扣回 percentage/100 × investment，并删除分配记录
- SELL：把卖出的股数加回原钱包（按ID、再按键查找，找不到则重建）
"""

import logging
from decimal import Decimal
from typing import List, Optional

from ...data.storage import BaseRecordStore, StorageConfig
from ..exceptions import ConsistencyViolation, ValidationError
from ..models.transaction import Transaction, TransactionType
from ..models.transaction_allocation import TransactionAllocation
from ..models.wallet import Wallet
from ..utils.decimal_utils import HUNDRED
from .wallet_store import WalletStore

T = StorageConfig.Tables


class ReversalEngine:
    """交易影响撤销"""

    def __init__(self, storage: BaseRecordStore, wallet_store: WalletStore):
        self.storage = storage
        self.wallet_store = wallet_store
        self.logger = logging.getLogger(__name__)

    def get_allocations(self, transaction_id: int) -> List[TransactionAllocation]:
        rows = self.storage.list(T.TRANSACTION_ALLOCATIONS, transaction_id=transaction_id)
        return [TransactionAllocation.from_dict(r) for r in rows]

    def reverse_buy(self, transaction: Transaction) -> None:
        """
        撤销买入

        Raises:
            ValidationError: 钱包中该买入的股数已被卖出
            ConsistencyViolation: 分配引用的钱包不存在且没有卖出能解释
        """
        if transaction.transaction_type != TransactionType.BUY:
            raise ValueError(f"reverse_buy 只能用于 BUY 交易: {transaction}")

        allocations = self.get_allocations(transaction.id)
        if not allocations:
            raise ConsistencyViolation(
                f"BUY {transaction.id} has no allocation rows",
                asset_id=transaction.asset_id,
                details={'transaction_id': transaction.id},
            )

        for allocation in allocations:
            wallet = self._wallet_for_allocation(transaction, allocation)
            delta = -(transaction.investment * allocation.percentage / HUNDRED)
            self.wallet_store.upsert(
                wallet.asset_id, wallet.price, wallet.profit_target_id, delta
            )

        removed = self.storage.delete_where(T.TRANSACTION_ALLOCATIONS, transaction_id=transaction.id)
        self.logger.info(f"↩️ 已撤销买入 {transaction.id}: {removed} 条分配")

    def _wallet_for_allocation(self, transaction: Transaction, allocation: TransactionAllocation) -> Wallet:
        wallet = self.wallet_store.get(allocation.wallet_id)
        if wallet is not None:
            return wallet

        if allocation.wallet_id is None or self._wallet_has_sells(allocation.wallet_id):
            raise ValidationError(
                f"Cannot reverse BUY {transaction.id}: the shares it bought into "
                f"wallet {allocation.wallet_id} were already sold",
                'transaction_id', transaction.id,
            )

        raise ConsistencyViolation(
            f"Wallet {allocation.wallet_id} referenced by allocation {allocation.id} is missing",
            asset_id=transaction.asset_id,
            details={'transaction_id': transaction.id, 'wallet_id': allocation.wallet_id},
        )

    def _wallet_has_sells(self, wallet_id: int) -> bool:
        rows = self.storage.list(
            T.TRANSACTIONS, transaction_type=TransactionType.SELL.value, wallet_id=wallet_id
        )
        return bool(rows)

    def reverse_sell(self, transaction: Transaction, profit_target_price: Optional[Decimal] = None) -> Wallet:
        """撤销卖出：股数与 quantity × 钱包价 加回原钱包"""
        if transaction.transaction_type != TransactionType.SELL:
            raise ValueError(f"reverse_sell 只能用于 SELL 交易: {transaction}")
        if transaction.wallet_price is None:
            raise ConsistencyViolation(
                f"SELL {transaction.id} has no wallet price",
                asset_id=transaction.asset_id,
                details={'transaction_id': transaction.id},
            )

        wallet = self.wallet_store.get(transaction.wallet_id)
        if wallet is not None and wallet.asset_id != transaction.asset_id:
            wallet = None

        restored = self.wallet_store.add_shares(
            transaction.asset_id,
            transaction.wallet_price,
            transaction.profit_target_id,
            transaction.quantity,
            profit_target_price=profit_target_price,
            wallet=wallet,
        )
        if transaction.wallet_id is not None and restored.id != transaction.wallet_id:
            self._relink_wallet(transaction.wallet_id, restored.id)
        self.logger.info(f"↩️ 已撤销卖出 {transaction.id}: {transaction.quantity} 股回到钱包 {restored.id}")
        return restored

    def _relink_wallet(self, old_id: int, new_id: int) -> None:
        """钱包关闭后被重建：把仍指向旧ID的分配与卖出记录改为新ID"""
        for row in self.storage.list(T.TRANSACTION_ALLOCATIONS, wallet_id=old_id):
            self.storage.update(T.TRANSACTION_ALLOCATIONS, row['id'], {'wallet_id': new_id})
        for row in self.storage.list(T.TRANSACTIONS, wallet_id=old_id):
            self.storage.update(T.TRANSACTIONS, row['id'], {'wallet_id': new_id})
        self.logger.debug(f"钱包 {old_id} 已重建为 {new_id}")
