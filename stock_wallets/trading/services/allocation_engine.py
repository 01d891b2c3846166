#!/usr/bin/env python3
"""
买入分配引擎
把一笔买入按百分比分配到资产的各个止盈目标，并写入对应的钱包

分配规则：
1. total_shares = investment / price；每行股数 = round(行投资额 / price, 5)，与写入钱包的股数相同
2. 指定了百分比（> 0）的目标按指定值分配；其余目标平分剩余百分比
3. 指定百分比之和超过100时拒绝；全部目标都已指定且不足100时，剩余部分不分配
4. 没有配置止盈目标时，使用 profit_target_id=None、目标0%的隐式目标分配100%
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from ..config import DEFAULT_TRADING_CONFIG, TradingConfig
from ..exceptions import NotFoundError, ValidationError
from ..models.asset import ProfitTarget
from ..models.wallet import Wallet, shares_for_investment
from ..utils.decimal_utils import (
    HUNDRED, Number, to_amount_decimal, to_decimal, to_price_key, quantize
)
from .wallet_store import WalletStore

PROFIT_TARGET_PRICE_PRECISION = Decimal('0.00001')


def calculate_profit_target_price(price: Decimal, target_percent: Decimal, commission: Decimal) -> Decimal:
    """止盈价 = price × (1 + pt%/100) / (1 − commission/100)，保留5位小数"""
    raw = price * (1 + target_percent / HUNDRED) / (1 - commission / HUNDRED)
    return quantize(raw, PROFIT_TARGET_PRICE_PRECISION)


@dataclass
class AllocationLine:
    """单个止盈目标的分配计划"""
    profit_target_id: Optional[int]
    percentage: Decimal
    shares: Decimal
    investment: Decimal
    profit_target_price: Decimal
    wallet_id: Optional[int] = None


@dataclass
class AllocationResult:
    lines: List[AllocationLine] = field(default_factory=list)
    total_shares: Decimal = Decimal('0')

    @property
    def wallet_ids(self) -> List[int]:
        ids: List[int] = []
        for line in self.lines:
            if line.wallet_id is not None and line.wallet_id not in ids:
                ids.append(line.wallet_id)
        return ids

    @property
    def total_percentage(self) -> Decimal:
        return sum((line.percentage for line in self.lines), Decimal('0'))


class AllocationEngine:
    """买入分配引擎"""

    def __init__(self, wallet_store: WalletStore, config: Optional[TradingConfig] = None):
        self.wallet_store = wallet_store
        self.config = config or DEFAULT_TRADING_CONFIG
        self.logger = logging.getLogger(__name__)

    def plan(
        self,
        price: Number,
        investment: Number,
        targets: List[ProfitTarget],
        percentages: Optional[Dict[int, Number]] = None,
        commission: Optional[Number] = None,
    ) -> AllocationResult:
        """
        计算分配方案（不写入）

        Args:
            price: 买入价
            investment: 投资金额
            targets: 资产的止盈目标
            percentages: {profit_target_id: 百分比}；为 None 时使用各目标的默认分配比例
            commission: 佣金百分比
        """
        price = to_decimal(price, precision=6) if price is not None else Decimal('0')
        investment = to_decimal(investment, precision=6) if investment is not None else Decimal('0')
        commission = to_decimal(commission, precision=6) if commission is not None else Decimal('0')

        if price <= 0 or investment <= 0:
            raise ValidationError(
                f"Buy needs a positive price and investment (price={price}, investment={investment})",
                'investment', investment,
            )
        total_shares = investment / price

        if not targets:
            return AllocationResult(
                lines=[self._line(None, HUNDRED, price, investment, Decimal('0'), commission)],
                total_shares=total_shares,
            )

        resolved = self._resolve_percentages(targets, percentages)

        lines = []
        for target in sorted(targets, key=lambda t: (t.sort_order, t.id or 0)):
            pct = resolved.get(target.id, Decimal('0'))
            if pct <= 0:
                continue
            lines.append(self._line(
                target.id, pct, price, investment, target.target_percent, commission
            ))

        return AllocationResult(lines=lines, total_shares=total_shares)

    def _resolve_percentages(
        self, targets: List[ProfitTarget], percentages: Optional[Dict[int, Number]]
    ) -> Dict[int, Decimal]:
        target_ids = [t.id for t in targets]

        if percentages is None:
            requested = {t.id: t.allocation_percent or Decimal('0') for t in targets}
        else:
            requested = {}
            for target_id, value in percentages.items():
                if target_id not in target_ids:
                    raise NotFoundError("ProfitTarget", target_id)
                requested[target_id] = to_decimal(value, precision=6) if value is not None else Decimal('0')

        for target_id, pct in requested.items():
            if pct < 0:
                raise ValidationError(
                    f"Allocation percentage for target {target_id} cannot be negative", 'percentage', pct
                )

        specified = {tid: pct for tid, pct in requested.items() if pct > 0}
        unspecified = [tid for tid in target_ids if tid not in specified]
        specified_total = sum(specified.values(), Decimal('0'))

        if specified_total > HUNDRED:
            raise ValidationError(
                f"Allocation percentages sum to {specified_total}%, which exceeds 100%",
                'percentage', specified_total,
            )

        if not specified:
            if self.config.require_explicit_allocation:
                raise ValidationError("At least one profit target allocation percentage is required", 'percentage')
            even = HUNDRED / len(target_ids)
            return {tid: even for tid in target_ids}

        resolved = dict(specified)
        remaining = HUNDRED - specified_total
        if unspecified and remaining > 0:
            share = remaining / len(unspecified)
            for tid in unspecified:
                resolved[tid] = share
        return resolved

    @staticmethod
    def _line(
        profit_target_id: Optional[int],
        pct: Decimal,
        price: Decimal,
        investment: Decimal,
        target_percent: Decimal,
        commission: Decimal,
    ) -> AllocationLine:
        line_investment = investment * pct / HUNDRED
        return AllocationLine(
            profit_target_id=profit_target_id,
            percentage=pct,
            shares=shares_for_investment(to_amount_decimal(line_investment), to_price_key(price)),
            investment=line_investment,
            profit_target_price=calculate_profit_target_price(price, target_percent, commission),
        )

    def apply(self, asset_id: int, price: Number, result: AllocationResult) -> List[Optional[Wallet]]:
        """把分配方案写入钱包，返回每行对应的钱包"""
        wallets = []
        for line in result.lines:
            wallet = self.wallet_store.upsert(
                asset_id,
                price,
                line.profit_target_id,
                line.investment,
                line.profit_target_price,
            )
            line.wallet_id = wallet.id if wallet else None
            wallets.append(wallet)
        self.logger.debug(
            f"买入分配完成: {len(result.lines)} 个目标, 钱包 {result.wallet_ids}"
        )
        return wallets

    def allocate(
        self,
        asset_id: int,
        price: Number,
        investment: Number,
        targets: List[ProfitTarget],
        percentages: Optional[Dict[int, Number]] = None,
        commission: Optional[Number] = None,
    ) -> AllocationResult:
        """计算并写入"""
        result = self.plan(price, investment, targets, percentages, commission)
        self.apply(asset_id, price, result)
        return result
