#!/usr/bin/env python3
"""
投资组合服务
组合钱包、盈亏、现金流与信号，提供资产总览与信号扫描
"""

import logging
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

from ...data.models import PriceSnapshot
from ...data.price_service import PriceService
from ...data.storage import BaseRecordStore
from ..calculators.cash_calculator import CashCalculator
from ..calculators.pnl_calculator import PnLCalculator
from ..calculators.signal_calculator import SignalCalculator, effective_price
from ..config import DEFAULT_TRADING_CONFIG, TradingConfig
from ..exceptions import ConsistencyViolation
from ..models.asset import Asset, AssetStatus, EntryTarget, YearlyBudget
from ..models.position_summary import AssetOverview, CashFlowSummary
from ..models.signals import AssetSignals
from ..models.transaction import Transaction
from .asset_service import AssetService
from .transaction_service import TransactionService


class PortfolioService:
    """投资组合服务"""

    def __init__(
        self,
        storage: BaseRecordStore,
        config: Optional[TradingConfig] = None,
        price_service: Optional[PriceService] = None,
    ):
        """
        初始化投资组合服务

        Args:
            storage: 存储实例
            config: 交易配置
            price_service: 价格服务；为 None 时只使用传入的快照或测试价格
        """
        self.storage = storage
        self.config = config or DEFAULT_TRADING_CONFIG
        self.price_service = price_service
        self.logger = logging.getLogger(__name__)

        cache = price_service.cache if price_service is not None else None
        self.asset_service = AssetService(storage, self.config, price_cache=cache)
        self.transaction_service = TransactionService(storage, self.config)
        self.cash_calculator = CashCalculator(self.config)
        self.pnl_calculator = PnLCalculator()
        self.signal_calculator = SignalCalculator(self.config)

    def get_cash_flow(self, asset_id: int, year: Optional[int] = None) -> CashFlowSummary:
        """现金流汇总；年度预算默认取当年"""
        year = year or date.today().year
        transactions = self.transaction_service.list_transactions(asset_id)
        budget: Optional[YearlyBudget] = self.asset_service.get_yearly_budget(asset_id, year)
        return self.cash_calculator.summarize(
            transactions, max_oop=budget.amount if budget else None, year=year
        )

    def get_asset_overview(
        self,
        asset_id: int,
        snapshot: Optional[PriceSnapshot] = None,
        today: Optional[date] = None,
    ) -> AssetOverview:
        """
        获取单个资产的总览

        Args:
            asset_id: 资产ID
            snapshot: 价格快照；为 None 时使用资产的测试价格
            today: 计算“距上次买入天数”的基准日期
        """
        today = today or datetime.now().date()
        asset = self.asset_service.get_asset(asset_id)
        transactions = self.transaction_service.list_transactions(asset_id)
        wallets = self.transaction_service.get_wallets(asset_id)
        entry_targets = self.asset_service.list_entry_targets(asset_id)

        signals = self.signal_calculator.calculate(
            asset, transactions, wallets, entry_targets, snapshot, today
        )
        current_price, _ = effective_price(snapshot, asset)
        pnl = self.pnl_calculator.summarize(wallets, transactions, current_price)
        cash_flow = self.get_cash_flow(asset_id, today.year)
        cash_flow.roic_percent = self.cash_calculator.roic(cash_flow, pnl.market_value)

        return AssetOverview(
            asset_id=asset.id,
            symbol=asset.symbol,
            wallets=wallets,
            pnl=pnl,
            cash_flow=cash_flow,
            signals=signals,
        )

    def scan_signals(
        self,
        snapshots: Optional[Dict[str, PriceSnapshot]] = None,
        today: Optional[date] = None,
        progress_callback: Optional[Callable[[int, int, str], None]] = None,
    ) -> List[AssetSignals]:
        """
        扫描全部 ACTIVE 资产的信号（HIDDEN/ARCHIVED 跳过）

        Args:
            snapshots: {symbol: 快照}；为 None 且配置了价格服务时先批量刷新
            today: 基准日期
            progress_callback: 传给价格刷新的进度回调
        """
        assets = self.asset_service.list_assets(AssetStatus.ACTIVE)
        if snapshots is None:
            snapshots = {}
            if self.price_service is not None and assets:
                result = self.price_service.refresh([a.symbol for a in assets], progress_callback)
                snapshots = result.snapshots

        results: List[AssetSignals] = []
        for asset in assets:
            try:
                results.append(self._asset_signals(asset, snapshots.get(asset.symbol), today))
            except ConsistencyViolation:
                raise
            except Exception as e:
                self.logger.error(f"❌ 计算 {asset.symbol} 信号失败: {e}")
                continue

        self.logger.info(f"📊 信号扫描完成: {len(results)}/{len(assets)} 个资产")
        return results

    def _asset_signals(self, asset: Asset, snapshot: Optional[PriceSnapshot],
                       today: Optional[date]) -> AssetSignals:
        transactions: List[Transaction] = self.transaction_service.list_transactions(asset.id)
        wallets = self.transaction_service.get_wallets(asset.id)
        entry_targets: List[EntryTarget] = self.asset_service.list_entry_targets(asset.id)
        return self.signal_calculator.calculate(asset, transactions, wallets, entry_targets, snapshot, today)
