#!/usr/bin/env python3
"""
交易记录服务
负责记录、编辑和删除交易，并保持钱包与交易日志一致
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ...data.storage import BaseRecordStore, StorageConfig
from ..config import DEFAULT_TRADING_CONFIG, TradingConfig
from ..exceptions import NotFoundError, ValidationError
from ..models.asset import Asset, EntryTarget, ProfitTarget
from ..models.transaction import INCOME_TYPES, Transaction, TransactionType
from ..models.transaction_allocation import TransactionAllocation
from ..models.wallet import Wallet, cost_of_shares
from ..utils.date_utils import DateLike
from ..utils.decimal_utils import HUNDRED, Number, to_amount_decimal, to_share_decimal
from ..calculators.signal_calculator import calculate_lbd_price, primary_entry_target
from .allocation_engine import AllocationEngine, AllocationResult, calculate_profit_target_price
from .reversal_engine import ReversalEngine
from .sell_resolver import SellResolver
from .wallet_rebuilder import WalletRebuilder
from .wallet_store import WalletStore

T = StorageConfig.Tables

# 各类型允许编辑的字段
EDITABLE_FIELDS = {
    TransactionType.BUY: {'transaction_date', 'signal', 'price', 'investment', 'notes'},
    TransactionType.SELL: {'transaction_date', 'signal', 'price', 'quantity', 'notes'},
    TransactionType.DIVIDEND: {'transaction_date', 'amount', 'notes'},
    TransactionType.SLP: {'transaction_date', 'amount', 'notes'},
    TransactionType.SPLIT: {'transaction_date', 'split_ratio', 'notes'},
}


class TransactionService:
    """
    交易记录服务

    ## 事务边界策略

    每个变更都在一个 storage.transaction() 中完成：
    1. 校验输入（写入之前）
    2. 撤销旧交易对钱包的影响（编辑/删除）
    3. 写入交易记录与分配记录
    4. 应用新交易对钱包的影响
    5. 重放交易日志确认整个序列仍然可行

    任何一步失败整个事务回滚，钱包与交易日志不会出现部分更新。

    ## 拆股

    SPLIT 本身以及排在最近一次 SPLIT 之前的交易的变更不走增量路径，
    而是写入交易日志后调用 rebuild_from_log 重建钱包。
    """

    def __init__(self, storage: BaseRecordStore, config: Optional[TradingConfig] = None):
        """
        初始化交易服务

        Args:
            storage: 存储实例
            config: 交易配置
        """
        self.storage = storage
        self.config = config or DEFAULT_TRADING_CONFIG
        self.logger = logging.getLogger(__name__)

        self.wallet_store = WalletStore(storage, self.config)
        self.allocation_engine = AllocationEngine(self.wallet_store, self.config)
        self.sell_resolver = SellResolver(self.wallet_store, self.config)
        self.reversal_engine = ReversalEngine(storage, self.wallet_store)
        self.rebuilder = WalletRebuilder(storage, self.wallet_store, self.config)

    # =================== 记录交易 ===================

    def record_buy(
        self,
        asset_id: int,
        price: Number,
        investment: Number,
        transaction_date: DateLike,
        signal: str,
        percentages: Optional[Dict[int, Number]] = None,
        notes: Optional[str] = None,
    ) -> Transaction:
        """
        记录买入并分配到止盈目标

        Args:
            asset_id: 资产ID
            price: 买入价
            investment: 投资金额
            transaction_date: 交易日期
            signal: 买入信号
            percentages: {profit_target_id: 百分比}；None 时使用目标的默认分配比例
            notes: 备注

        Returns:
            Transaction: 创建的交易记录
        """
        self.logger.info(f"记录买入: 资产 {asset_id} ${investment} @ {price}")

        with self.storage.transaction():
            asset = self._require_asset(asset_id)
            tx = self._build(
                asset_id=asset_id,
                transaction_type=TransactionType.BUY,
                transaction_date=transaction_date,
                signal=signal,
                price=price,
                investment=investment,
                notes=notes,
            )
            self._snapshot_entry_target(tx)
            tx.id = self.storage.create(T.TRANSACTIONS, tx.to_dict())
            self._apply_buy(asset, tx, percentages)
            self._check_log(asset_id)

        self.logger.info(f"✅ 买入已记录: {tx}")
        return tx

    def record_sell(
        self,
        asset_id: int,
        wallet_id: int,
        price: Number,
        quantity: Number,
        transaction_date: DateLike,
        signal: str,
        notes: Optional[str] = None,
    ) -> Transaction:
        """
        从指定钱包卖出

        Raises:
            InsufficientSharesError: 卖出数量超过钱包股数
            ValidationError: 卖出日期早于最近一次拆股
        """
        self.logger.info(f"记录卖出: 资产 {asset_id} 钱包 {wallet_id} {quantity}股 @ {price}")

        with self.storage.transaction():
            asset = self._require_asset(asset_id)
            tx = self._build(
                asset_id=asset_id,
                transaction_type=TransactionType.SELL,
                transaction_date=transaction_date,
                signal=signal,
                price=price,
                quantity=quantity,
                notes=notes,
            )
            wallet = self.wallet_store.require(wallet_id)
            self._apply_sell(asset, tx, wallet)
            tx.id = self.storage.create(T.TRANSACTIONS, tx.to_dict())
            self._reject_sell_before_split(tx)
            self._check_log(asset_id)

        self.logger.info(f"✅ 卖出已记录: {tx}, 已实现盈亏 {tx.realized_pnl}")
        return tx

    def record_dividend(self, asset_id: int, amount: Number, transaction_date: DateLike,
                        notes: Optional[str] = None) -> Transaction:
        """记录分红"""
        return self._record_income(TransactionType.DIVIDEND, asset_id, amount, transaction_date, notes)

    def record_slp(self, asset_id: int, amount: Number, transaction_date: DateLike,
                   notes: Optional[str] = None) -> Transaction:
        """记录证券借出收入"""
        return self._record_income(TransactionType.SLP, asset_id, amount, transaction_date, notes)

    def _record_income(self, tx_type: TransactionType, asset_id: int, amount: Number,
                       transaction_date: DateLike, notes: Optional[str]) -> Transaction:
        with self.storage.transaction():
            self._require_asset(asset_id)
            tx = self._build(
                asset_id=asset_id,
                transaction_type=tx_type,
                transaction_date=transaction_date,
                amount=amount,
                notes=notes,
            )
            tx.id = self.storage.create(T.TRANSACTIONS, tx.to_dict())

        self.logger.info(f"✅ 收入已记录: {tx}")
        return tx

    def record_split(self, asset_id: int, split_ratio: Number, transaction_date: DateLike,
                     notes: Optional[str] = None) -> Transaction:
        """
        记录拆股；钱包按日志重建（shares × r，price ÷ r，投资额不变）
        """
        self.logger.info(f"记录拆股: 资产 {asset_id} 1:{split_ratio}")

        with self.storage.transaction():
            self._require_asset(asset_id)
            tx = self._build(
                asset_id=asset_id,
                transaction_type=TransactionType.SPLIT,
                transaction_date=transaction_date,
                split_ratio=split_ratio,
                notes=notes,
            )
            tx.id = self.storage.create(T.TRANSACTIONS, tx.to_dict())
            self.rebuilder.rebuild_from_log(asset_id)
            self._check_log(asset_id)

        self.logger.info(f"✅ 拆股已记录: {tx}")
        return tx

    # =================== 编辑与删除 ===================

    def update_transaction(
        self,
        transaction_id: int,
        changes: Dict[str, Any],
        percentages: Optional[Dict[int, Number]] = None,
    ) -> Transaction:
        """
        编辑交易：先撤销旧交易的影响，再应用新值

        Args:
            transaction_id: 交易ID
            changes: 要修改的字段；SELL 可额外指定 wallet_id 改为从其他钱包卖出
            percentages: BUY 的新分配比例；None 时沿用原有分配

        Returns:
            Transaction: 更新后的交易
        """
        with self.storage.transaction():
            old = self.get_transaction(transaction_id)
            asset = self._require_asset(old.asset_id)
            changes = dict(changes)
            target_wallet_id = changes.pop('wallet_id', None) if old.is_sell else None

            unknown = set(changes) - EDITABLE_FIELDS[old.transaction_type]
            if unknown:
                raise ValidationError(
                    f"Fields {sorted(unknown)} cannot be edited on a {old.transaction_type.value}",
                    'changes', sorted(unknown),
                )

            data = old.to_dict()
            data.update(changes)
            new = self._build(**{k: v for k, v in data.items() if k != 'id'})
            new.id = old.id

            if old.is_buy and percentages is None:
                percentages = self._previous_percentages(asset.id, old.id)

            if self._needs_rebuild(old) or self._needs_rebuild(new):
                self._update_via_rebuild(asset, old, new, percentages, target_wallet_id)
            else:
                self._update_incremental(asset, old, new, percentages, target_wallet_id)

            self._check_log(asset.id)

        self.logger.info(f"✅ 交易已更新: {new}")
        return new

    def _update_incremental(self, asset: Asset, old: Transaction, new: Transaction,
                            percentages: Optional[Dict[int, Number]],
                            target_wallet_id: Optional[int]) -> None:
        if old.is_buy:
            self.reversal_engine.reverse_buy(old)
            if new.price != old.price:
                self._snapshot_entry_target(new)
            self._save_transaction(new)
            self._apply_buy(asset, new, percentages)
        elif old.is_sell:
            restored = self.reversal_engine.reverse_sell(
                old, self._profit_target_price(asset, old.profit_target_id, old.wallet_price)
            )
            wallet = self.wallet_store.require(target_wallet_id) if target_wallet_id else restored
            self._apply_sell(asset, new, wallet)
            self._save_transaction(new)
            self._reject_sell_before_split(new)
        else:
            self._save_transaction(new)

    def _update_via_rebuild(self, asset: Asset, old: Transaction, new: Transaction,
                            percentages: Optional[Dict[int, Number]],
                            target_wallet_id: Optional[int]) -> None:
        if old.is_sell:
            if target_wallet_id is not None:
                raise ValidationError(
                    "A SELL recorded before the latest split cannot be moved to another wallet",
                    'wallet_id', target_wallet_id,
                )
            if self._needs_rebuild(old) != self._needs_rebuild(new):
                raise ValidationError(
                    f"SELL {old.id} cannot be moved across a split", 'transaction_date', new.transaction_date
                )
            self._price_sell(asset, new, new.wallet_price)
        elif old.is_buy:
            self.storage.delete_where(T.TRANSACTION_ALLOCATIONS, transaction_id=old.id)
            if new.price != old.price:
                self._snapshot_entry_target(new)

        self._save_transaction(new)
        if new.is_buy:
            result = self._plan_buy(asset, new, percentages)
            self._write_allocations(new.id, result)
        self.logger.info(f"🔁 交易 {old.id} 涉及拆股，按交易日志重建钱包")
        self.rebuilder.rebuild_from_log(asset.id)

    def delete_transaction(self, transaction_id: int) -> Transaction:
        """删除交易并撤销其对钱包的影响"""
        with self.storage.transaction():
            tx = self.get_transaction(transaction_id)
            asset = self._require_asset(tx.asset_id)

            if self._needs_rebuild(tx):
                self.storage.delete_where(T.TRANSACTION_ALLOCATIONS, transaction_id=tx.id)
                self.storage.delete(T.TRANSACTIONS, tx.id)
                self.rebuilder.rebuild_from_log(asset.id)
            else:
                if tx.is_buy:
                    self.reversal_engine.reverse_buy(tx)
                elif tx.is_sell:
                    self.reversal_engine.reverse_sell(
                        tx, self._profit_target_price(asset, tx.profit_target_id, tx.wallet_price)
                    )
                self.storage.delete(T.TRANSACTIONS, tx.id)

            self._check_log(asset.id)

        self.logger.info(f"🗑️ 交易已删除: {tx}")
        return tx

    def delete_all_transactions(self, asset_id: int) -> int:
        """删除资产的全部交易、分配与钱包，返回删除的交易数"""
        with self.storage.transaction():
            self._require_asset(asset_id)
            transactions = self.list_transactions(asset_id)
            for tx in transactions:
                self.storage.delete_where(T.TRANSACTION_ALLOCATIONS, transaction_id=tx.id)
            deleted = self.storage.delete_where(T.TRANSACTIONS, asset_id=asset_id)
            wallets = self.storage.delete_where(T.WALLETS, asset_id=asset_id)

        self.logger.info(f"🗑️ 资产 {asset_id} 已删除 {deleted} 笔交易、{wallets} 个钱包")
        return deleted

    # =================== 查询 ===================

    def get_transaction(self, transaction_id: int) -> Transaction:
        row = self.storage.get(T.TRANSACTIONS, transaction_id)
        if row is None:
            raise NotFoundError("Transaction", transaction_id)
        return Transaction.from_dict(row)

    def list_transactions(self, asset_id: int, transaction_type: Optional[TransactionType] = None) -> List[Transaction]:
        """按 (日期, ID) 升序列出交易"""
        filters: Dict[str, Any] = {'asset_id': asset_id}
        if transaction_type is not None:
            filters['transaction_type'] = transaction_type.value
        rows = self.storage.list(T.TRANSACTIONS, **filters)
        return sorted((Transaction.from_dict(r) for r in rows), key=lambda tx: tx.sort_key)

    def get_allocations(self, transaction_id: int) -> List[TransactionAllocation]:
        return self.reversal_engine.get_allocations(transaction_id)

    def get_wallets(self, asset_id: int) -> List[Wallet]:
        return self.wallet_store.list_for_asset(asset_id)

    # =================== 内部步骤 ===================

    def _build(self, **fields: Any) -> Transaction:
        """构造交易模型，把模型层的 ValueError 转换为 ValidationError"""
        try:
            tx = Transaction(**fields)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        if tx.price is not None and tx.price > self.config.max_price_per_share:
            raise ValidationError(
                f"Price {tx.price} exceeds the maximum of {self.config.max_price_per_share}", 'price', tx.price
            )
        return tx

    def _require_asset(self, asset_id: int) -> Asset:
        row = self.storage.get(T.ASSETS, asset_id)
        if row is None:
            raise NotFoundError("Asset", asset_id)
        return Asset.from_dict(row)

    def _profit_targets(self, asset_id: int) -> List[ProfitTarget]:
        rows = self.storage.list(T.PROFIT_TARGETS, asset_id=asset_id)
        return [ProfitTarget.from_dict(r) for r in rows]

    def _snapshot_entry_target(self, tx: Transaction) -> None:
        """买入时记录主入场目标与下一个买入价（LBD）"""
        rows = self.storage.list(T.ENTRY_TARGETS, asset_id=tx.asset_id)
        primary = primary_entry_target([EntryTarget.from_dict(r) for r in rows])
        if primary is None:
            tx.entry_target_price = None
            tx.entry_target_percent = None
            return
        tx.entry_target_percent = primary.target_percent
        tx.entry_target_price = calculate_lbd_price(tx.price, primary.target_percent)

    def _plan_buy(self, asset: Asset, tx: Transaction,
                  percentages: Optional[Dict[int, Number]]) -> AllocationResult:
        return self.allocation_engine.plan(
            tx.price, tx.investment, self._profit_targets(asset.id), percentages, asset.commission_percent
        )

    def _apply_buy(self, asset: Asset, tx: Transaction, percentages: Optional[Dict[int, Number]]) -> None:
        result = self._plan_buy(asset, tx, percentages)
        if self._needs_rebuild(tx):
            self._write_allocations(tx.id, result)
            self.rebuilder.rebuild_from_log(asset.id)
            return
        self.allocation_engine.apply(asset.id, tx.price, result)
        self._write_allocations(tx.id, result)

    def _write_allocations(self, transaction_id: int, result: AllocationResult) -> None:
        for line in result.lines:
            allocation = TransactionAllocation(
                transaction_id=transaction_id,
                profit_target_id=line.profit_target_id,
                wallet_id=line.wallet_id,
                percentage=line.percentage,
                shares=line.shares,
            )
            allocation.id = self.storage.create(T.TRANSACTION_ALLOCATIONS, allocation.to_dict())

    def _previous_percentages(self, asset_id: int, transaction_id: int) -> Optional[Dict[int, Decimal]]:
        """沿用原有分配中仍然存在的止盈目标的比例"""
        target_ids = {t.id for t in self._profit_targets(asset_id)}
        previous = {
            a.profit_target_id: a.percentage
            for a in self.get_allocations(transaction_id)
            if a.profit_target_id in target_ids
        }
        return previous or None

    def _price_sell(self, asset: Asset, tx: Transaction, wallet_price: Decimal) -> None:
        """按钱包价计算卖出的成本与净收入"""
        tx.quantity = to_share_decimal(tx.quantity)
        gross = tx.price * tx.quantity
        commission = gross * asset.commission_percent / HUNDRED
        tx.cost_basis = cost_of_shares(tx.quantity, wallet_price)
        tx.amount = to_amount_decimal(gross - commission)

    def _apply_sell(self, asset: Asset, tx: Transaction, wallet: Wallet) -> None:
        resolution = self.sell_resolver.resolve(asset, wallet, tx.price, tx.quantity)
        tx.quantity = resolution.quantity
        tx.cost_basis = resolution.cost_basis
        tx.amount = resolution.proceeds
        tx.wallet_id = wallet.id
        tx.wallet_price = wallet.price
        tx.profit_target_id = wallet.profit_target_id
        self.sell_resolver.apply(resolution)

    def _save_transaction(self, tx: Transaction) -> None:
        data = tx.to_dict()
        data.pop('asset_id')
        self.storage.update(T.TRANSACTIONS, tx.id, data)

    def _profit_target_price(self, asset: Asset, profit_target_id: Optional[int],
                             price: Optional[Decimal]) -> Optional[Decimal]:
        """重建钱包时使用的止盈价；目标已删除时按0%计算"""
        if price is None:
            return None
        target_percent = Decimal('0')
        if profit_target_id is not None:
            row = self.storage.get(T.PROFIT_TARGETS, profit_target_id)
            if row is not None:
                target_percent = ProfitTarget.from_dict(row).target_percent
        return calculate_profit_target_price(price, target_percent, asset.commission_percent)

    def _latest_split(self, asset_id: int) -> Optional[Transaction]:
        splits = self.list_transactions(asset_id, TransactionType.SPLIT)
        return splits[-1] if splits else None

    def _needs_rebuild(self, tx: Transaction) -> bool:
        """SPLIT 本身或排在最近一次 SPLIT 之前的交易需要按日志重建"""
        if tx.is_split:
            return True
        if tx.transaction_type in INCOME_TYPES:
            return False
        split = self._latest_split(tx.asset_id)
        if split is None or tx.id is None:
            return False
        return tx.sort_key < split.sort_key

    def _reject_sell_before_split(self, tx: Transaction) -> None:
        split = self._latest_split(tx.asset_id)
        if split is not None and tx.sort_key < split.sort_key:
            raise ValidationError(
                f"SELL dated {tx.transaction_date} is before the split on {split.transaction_date}",
                'transaction_date', tx.transaction_date,
            )

    def _check_log(self, asset_id: int) -> None:
        """重放交易日志，确认变更后的序列仍然可行"""
        self.rebuilder.replay(asset_id)
        if self.config.verify_after_mutation:
            self.rebuilder.verify(asset_id)
