#!/usr/bin/env python3
"""
资产配置服务
负责资产、入场目标、止盈目标与年度预算的增删改查

佣金或止盈百分比变化时，重新计算受影响钱包的止盈价。
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ...data.price_cache import PriceCache
from ...data.storage import BaseRecordStore, StorageConfig
from ..config import DEFAULT_TRADING_CONFIG, TargetDeletionPolicy, TradingConfig
from ..exceptions import NotFoundError, ValidationError
from ..models.asset import Asset, AssetStatus, EntryTarget, ProfitTarget, YearlyBudget
from ..models.transaction import Transaction, TransactionType
from ..models.transaction_allocation import TransactionAllocation
from ..models.wallet import shares_for_investment
from ..utils.decimal_utils import HUNDRED, Number, to_amount_decimal, to_price_key
from .allocation_engine import calculate_profit_target_price
from .wallet_rebuilder import WalletRebuilder
from .wallet_store import WalletStore

T = StorageConfig.Tables


class AssetService:
    """资产与目标配置服务"""

    def __init__(
        self,
        storage: BaseRecordStore,
        config: Optional[TradingConfig] = None,
        price_cache: Optional[PriceCache] = None,
    ):
        """
        Args:
            storage: 存储实例
            config: 交易配置
            price_cache: 价格缓存；保存测试价格时使对应股票的缓存失效
        """
        self.storage = storage
        self.config = config or DEFAULT_TRADING_CONFIG
        self.price_cache = price_cache
        self.logger = logging.getLogger(__name__)
        self.wallet_store = WalletStore(storage, self.config)
        self.rebuilder = WalletRebuilder(storage, self.wallet_store, self.config)

    # =================== 资产 ===================

    def create_asset(
        self,
        symbol: str,
        name: Optional[str] = None,
        commission: Optional[Number] = None,
        test_price: Optional[Number] = None,
        status: AssetStatus = AssetStatus.ACTIVE,
    ) -> Asset:
        """创建资产；股票代码唯一"""
        asset = self._model(Asset, symbol=symbol, name=name, commission=commission,
                            test_price=test_price, status=status)
        self._validate_asset(asset)
        if self.find_asset(asset.symbol) is not None:
            raise ValidationError(f"Asset {asset.symbol} already exists", 'symbol', asset.symbol)

        asset.id = self.storage.create(T.ASSETS, asset.to_dict())
        self.logger.info(f"✅ 已创建资产: {asset}")
        return asset

    def get_asset(self, asset_id: int) -> Asset:
        row = self.storage.get(T.ASSETS, asset_id)
        if row is None:
            raise NotFoundError("Asset", asset_id)
        return Asset.from_dict(row)

    def find_asset(self, symbol: str) -> Optional[Asset]:
        rows = self.storage.list(T.ASSETS, symbol=symbol.strip().upper())
        return Asset.from_dict(rows[0]) if rows else None

    def list_assets(self, status: Optional[AssetStatus] = None) -> List[Asset]:
        """按代码排序列出资产"""
        filters = {'status': status.value} if status is not None else {}
        return [Asset.from_dict(r) for r in self.storage.list(T.ASSETS, order_by='symbol', **filters)]

    def update_asset(self, asset_id: int, **changes: Any) -> Asset:
        """
        更新资产字段（symbol, name, commission, test_price, status）

        佣金变化时重新计算全部钱包的止盈价。
        """
        allowed = {'symbol', 'name', 'commission', 'test_price', 'status'}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Unknown asset fields: {sorted(unknown)}", 'changes', sorted(unknown))

        with self.storage.transaction():
            old = self.get_asset(asset_id)
            data = old.to_dict()
            data.update(changes)
            asset = self._model(Asset, **{k: v for k, v in data.items() if k != 'id'})
            asset.id = asset_id
            self._validate_asset(asset)

            if asset.symbol != old.symbol:
                other = self.find_asset(asset.symbol)
                if other is not None and other.id != asset_id:
                    raise ValidationError(f"Asset {asset.symbol} already exists", 'symbol', asset.symbol)

            self.storage.update(T.ASSETS, asset_id, asset.to_dict())
            if asset.commission_percent != old.commission_percent:
                self.recompute_profit_target_prices(asset_id)

        if asset.test_price != old.test_price:
            self._invalidate_price(old.symbol)
        self.logger.info(f"✅ 已更新资产: {asset}")
        return asset

    def set_status(self, asset_id: int, status: AssetStatus) -> Asset:
        return self.update_asset(asset_id, status=AssetStatus(status))

    def set_test_price(self, asset_id: int, test_price: Optional[Number]) -> Asset:
        """保存测试价格，并使该股票的价格缓存失效"""
        return self.update_asset(asset_id, test_price=test_price)

    def delete_asset(self, asset_id: int) -> None:
        """删除没有交易记录的资产（目标与预算一并删除）"""
        with self.storage.transaction():
            asset = self.get_asset(asset_id)
            if self.storage.count(T.TRANSACTIONS, asset_id=asset_id):
                raise ValidationError(
                    f"Asset {asset.symbol} still has transactions; archive it instead", 'asset_id', asset_id
                )
            self.storage.delete(T.ASSETS, asset_id)
        self.logger.info(f"🗑️ 已删除资产: {asset}")

    def _validate_asset(self, asset: Asset) -> None:
        if len(asset.symbol) > self.config.max_symbol_length:
            raise ValidationError(
                f"Symbol is longer than {self.config.max_symbol_length} characters", 'symbol', asset.symbol
            )
        if asset.commission is not None and asset.commission > self.config.max_commission_percent:
            raise ValidationError(
                f"Commission {asset.commission}% exceeds the maximum of {self.config.max_commission_percent}%",
                'commission', asset.commission,
            )
        if asset.test_price is not None and asset.test_price > self.config.max_price_per_share:
            raise ValidationError("Test price is out of range", 'test_price', asset.test_price)

    def _invalidate_price(self, symbol: str) -> None:
        if self.price_cache is not None:
            self.price_cache.invalidate(symbol)
            self.price_cache.save()
            self.logger.debug(f"价格缓存已失效: {symbol}")

    # =================== 入场目标 ===================

    def list_entry_targets(self, asset_id: int) -> List[EntryTarget]:
        """按 (sort_order, id) 排序；第一个为主入场目标"""
        rows = self.storage.list(T.ENTRY_TARGETS, order_by='sort_order, id', asset_id=asset_id)
        return [EntryTarget.from_dict(r) for r in rows]

    def add_entry_target(self, asset_id: int, target_percent: Number,
                         sort_order: Optional[int] = None, name: Optional[str] = None) -> EntryTarget:
        self.get_asset(asset_id)
        if sort_order is None:
            sort_order = self._next_sort_order(T.ENTRY_TARGETS, asset_id)
        target = self._model(EntryTarget, asset_id=asset_id, target_percent=target_percent,
                             sort_order=sort_order, name=name)
        target.id = self.storage.create(T.ENTRY_TARGETS, target.to_dict())
        self.logger.info(f"✅ 已添加入场目标: 资产 {asset_id} -{target.target_percent}%")
        return target

    def update_entry_target(self, target_id: int, **changes: Any) -> EntryTarget:
        row = self._require(T.ENTRY_TARGETS, "EntryTarget", target_id)
        row.update(changes)
        target = self._model(EntryTarget, asset_id=row['asset_id'], target_percent=row['target_percent'],
                             sort_order=row.get('sort_order') or 0, name=row.get('name'))
        target.id = target_id
        self.storage.update(T.ENTRY_TARGETS, target_id, target.to_dict())
        return target

    def delete_entry_target(self, target_id: int) -> None:
        self._require(T.ENTRY_TARGETS, "EntryTarget", target_id)
        self.storage.delete(T.ENTRY_TARGETS, target_id)
        self.logger.info(f"🗑️ 已删除入场目标 {target_id}")

    # =================== 止盈目标 ===================

    def get_profit_target(self, target_id: int) -> ProfitTarget:
        return ProfitTarget.from_dict(self._require(T.PROFIT_TARGETS, "ProfitTarget", target_id))

    def list_profit_targets(self, asset_id: int) -> List[ProfitTarget]:
        rows = self.storage.list(T.PROFIT_TARGETS, order_by='sort_order, id', asset_id=asset_id)
        return [ProfitTarget.from_dict(r) for r in rows]

    def add_profit_target(self, asset_id: int, target_percent: Number,
                          allocation_percent: Optional[Number] = None,
                          sort_order: Optional[int] = None, name: Optional[str] = None) -> ProfitTarget:
        self.get_asset(asset_id)
        if sort_order is None:
            sort_order = self._next_sort_order(T.PROFIT_TARGETS, asset_id)
        target = self._model(ProfitTarget, asset_id=asset_id, target_percent=target_percent,
                             allocation_percent=allocation_percent, sort_order=sort_order, name=name)
        target.id = self.storage.create(T.PROFIT_TARGETS, target.to_dict())
        self.logger.info(f"✅ 已添加止盈目标: 资产 {asset_id} {target}")
        return target

    def update_profit_target(self, target_id: int, **changes: Any) -> ProfitTarget:
        """更新止盈目标；target_percent 变化时重新计算该目标钱包的止盈价"""
        with self.storage.transaction():
            old = self.get_profit_target(target_id)
            data = old.to_dict()
            data.update(changes)
            target = self._model(ProfitTarget, **{k: v for k, v in data.items() if k != 'id'})
            target.id = target_id
            self.storage.update(T.PROFIT_TARGETS, target_id, target.to_dict())
            if target.target_percent != old.target_percent:
                self.recompute_profit_target_prices(target.asset_id)
        return target

    def delete_profit_target(self, target_id: int,
                             policy: Optional[TargetDeletionPolicy] = None) -> None:
        """
        删除止盈目标

        - 没有持仓钱包：直接删除，历史分配与卖出记录保留原目标ID
        - BLOCK：拒绝删除仍持有钱包的目标
        - REDISTRIBUTE：把该目标的分配平均改写到其余目标后按日志重建钱包；
          有卖出记录引用该目标或没有其他目标时拒绝
        """
        policy = policy or self.config.target_deletion_policy

        with self.storage.transaction():
            target = self.get_profit_target(target_id)
            asset_id = target.asset_id
            open_wallets = self.wallet_store.list_for_target(asset_id, target_id)

            if open_wallets:
                if policy == TargetDeletionPolicy.BLOCK:
                    raise ValidationError(
                        f"Profit target {target_id} still owns {len(open_wallets)} open wallet(s)",
                        'profit_target_id', target_id,
                    )
                self._redistribute(target)

            self.storage.delete(T.PROFIT_TARGETS, target_id)
            if open_wallets:
                self.rebuilder.rebuild_from_log(asset_id)

        self.logger.info(f"🗑️ 已删除止盈目标 {target_id} ({policy.value})")

    def _redistribute(self, target: ProfitTarget) -> None:
        """把指向该目标的分配记录平均改写到其余目标"""
        others = [t for t in self.list_profit_targets(target.asset_id) if t.id != target.id]
        if not others:
            raise ValidationError(
                f"Profit target {target.id} is the only target; there is nowhere to move its wallets",
                'profit_target_id', target.id,
            )
        sells = self.storage.list(
            T.TRANSACTIONS,
            asset_id=target.asset_id,
            transaction_type=TransactionType.SELL.value,
            profit_target_id=target.id,
        )
        if sells:
            raise ValidationError(
                f"Profit target {target.id} has {len(sells)} SELL(s) recorded against it",
                'profit_target_id', target.id,
            )

        buys = self.storage.list(T.TRANSACTIONS, asset_id=target.asset_id,
                                 transaction_type=TransactionType.BUY.value)
        count = Decimal(len(others))
        moved = 0
        for row in buys:
            buy = Transaction.from_dict(row)
            rows = self.storage.list(T.TRANSACTION_ALLOCATIONS, transaction_id=buy.id)
            allocations = {r['profit_target_id']: TransactionAllocation.from_dict(r) for r in rows}
            source = allocations.get(target.id)
            if source is None:
                continue

            percentage = source.percentage / count
            for other in others:
                existing = allocations.get(other.id)
                if existing is None:
                    self.storage.create(T.TRANSACTION_ALLOCATIONS, TransactionAllocation(
                        transaction_id=buy.id,
                        profit_target_id=other.id,
                        wallet_id=None,
                        percentage=percentage,
                        shares=self._allocated_shares(buy, percentage),
                    ).to_dict())
                else:
                    combined = existing.percentage + percentage
                    self.storage.update(T.TRANSACTION_ALLOCATIONS, existing.id, {
                        'percentage': combined,
                        'shares': self._allocated_shares(buy, combined),
                    })
            self.storage.delete(T.TRANSACTION_ALLOCATIONS, source.id)
            moved += 1

        self.logger.info(f"🔀 止盈目标 {target.id} 的 {moved} 笔买入分配已平均转移到 {len(others)} 个目标")

    @staticmethod
    def _allocated_shares(buy: Transaction, percentage: Decimal) -> Decimal:
        """分配行股数与重放时写入钱包的股数相同"""
        investment = to_amount_decimal(buy.investment * percentage / HUNDRED)
        return shares_for_investment(investment, to_price_key(buy.price))

    def recompute_profit_target_prices(self, asset_id: int) -> int:
        """按当前佣金与止盈百分比重新计算资产全部钱包的止盈价"""
        asset = self.get_asset(asset_id)
        percents = {t.id: t.target_percent for t in self.list_profit_targets(asset_id)}
        wallets = self.wallet_store.list_for_asset(asset_id)
        for wallet in wallets:
            price = calculate_profit_target_price(
                wallet.price, percents.get(wallet.profit_target_id, Decimal('0')), asset.commission_percent
            )
            if price != wallet.profit_target_price:
                self.wallet_store.set_profit_target_price(wallet, price)
        self.logger.debug(f"资产 {asset_id} 已重新计算 {len(wallets)} 个钱包的止盈价")
        return len(wallets)

    # =================== 年度预算 ===================

    def set_yearly_budget(self, asset_id: int, year: int, amount: Number) -> YearlyBudget:
        """设置某年的最大自付资金（已存在则覆盖）"""
        self.get_asset(asset_id)
        budget = self._model(YearlyBudget, asset_id=asset_id, year=year, amount=amount)
        existing = self.get_yearly_budget(asset_id, budget.year)
        if existing is None:
            budget.id = self.storage.create(T.YEARLY_BUDGETS, budget.to_dict())
        else:
            budget.id = existing.id
            self.storage.update(T.YEARLY_BUDGETS, existing.id, {'amount': budget.amount})
        self.logger.info(f"✅ 资产 {asset_id} {budget.year} 年预算: {budget.amount}")
        return budget

    def get_yearly_budget(self, asset_id: int, year: int) -> Optional[YearlyBudget]:
        rows = self.storage.list(T.YEARLY_BUDGETS, asset_id=asset_id, year=int(year))
        return YearlyBudget.from_dict(rows[0]) if rows else None

    def list_yearly_budgets(self, asset_id: int) -> List[YearlyBudget]:
        rows = self.storage.list(T.YEARLY_BUDGETS, order_by='year', asset_id=asset_id)
        return [YearlyBudget.from_dict(r) for r in rows]

    def delete_yearly_budget(self, asset_id: int, year: int) -> bool:
        return self.storage.delete_where(T.YEARLY_BUDGETS, asset_id=asset_id, year=int(year)) > 0

    # =================== 内部工具 ===================

    @staticmethod
    def _model(cls, **fields: Any):
        """构造模型，把 ValueError 转换为 ValidationError"""
        try:
            return cls(**fields)
        except ValueError as e:
            raise ValidationError(str(e)) from e

    def _require(self, table: str, entity: str, record_id: int) -> Dict[str, Any]:
        row = self.storage.get(table, record_id)
        if row is None:
            raise NotFoundError(entity, record_id)
        return row

    def _next_sort_order(self, table: str, asset_id: int) -> int:
        rows = self.storage.list(table, asset_id=asset_id)
        return max((r.get('sort_order') or 0 for r in rows), default=-1) + 1
