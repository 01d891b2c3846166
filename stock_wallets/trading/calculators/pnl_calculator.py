#!/usr/bin/env python3
"""
盈亏计算器
基于钱包与卖出记录计算已实现 / 未实现盈亏
"""

import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from ..models.position_summary import PnLSummary, WalletPnL
from ..models.transaction import Transaction, TransactionType
from ..models.wallet import Wallet
from ..utils.decimal_utils import HUNDRED, to_percent_decimal

ZERO = Decimal('0')


class PnLCalculator:
    """钱包级盈亏计算器"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def calculate_realized(self, transactions: Iterable[Transaction]) -> Tuple[Decimal, Decimal, Optional[Decimal]]:
        """
        已实现盈亏 = Σ (amount − cost_basis)，仅统计 SELL

        Returns:
            (realized_pnl, cost_basis_total, realized_pnl_percent)
        """
        realized = ZERO
        cost_total = ZERO
        for tx in transactions:
            if tx.transaction_type != TransactionType.SELL or tx.realized_pnl is None:
                continue
            realized += tx.realized_pnl
            cost_total += tx.cost_basis

        percent = to_percent_decimal(realized / cost_total * HUNDRED) if cost_total > 0 else None
        return realized, cost_total, percent

    def calculate_wallet_pnl(self, wallet: Wallet, current_price: Decimal) -> WalletPnL:
        """单个钱包的未实现盈亏"""
        market_value = wallet.market_value(current_price)
        unrealized = market_value - wallet.investment
        percent = to_percent_decimal(unrealized / wallet.investment * HUNDRED) if wallet.investment > 0 else None
        return WalletPnL(
            wallet=wallet,
            market_value=market_value,
            unrealized_pnl=unrealized,
            unrealized_pnl_percent=percent,
        )

    @staticmethod
    def shares_by_target(wallets: Iterable[Wallet]) -> Dict[Optional[int], Decimal]:
        totals: Dict[Optional[int], Decimal] = {}
        for wallet in wallets:
            totals[wallet.profit_target_id] = totals.get(wallet.profit_target_id, ZERO) + wallet.shares
        return totals

    def summarize(
        self,
        wallets: List[Wallet],
        transactions: Iterable[Transaction],
        current_price: Optional[Decimal] = None,
    ) -> PnLSummary:
        """
        资产级盈亏汇总

        Args:
            wallets: 当前的钱包
            transactions: 资产的全部交易
            current_price: 当前价；None 时不计算未实现盈亏
        """
        realized, cost_total, realized_pct = self.calculate_realized(transactions)
        total_shares = sum((w.shares for w in wallets), ZERO)
        total_investment = sum((w.investment for w in wallets), ZERO)

        summary = PnLSummary(
            realized_pnl=realized,
            realized_cost_basis=cost_total,
            realized_pnl_percent=realized_pct,
            total_shares=total_shares,
            total_investment=total_investment,
            shares_by_target=self.shares_by_target(wallets),
        )

        if current_price is not None:
            summary.wallets = [self.calculate_wallet_pnl(w, current_price) for w in wallets]
            summary.market_value = sum((p.market_value for p in summary.wallets), ZERO)
            summary.unrealized_pnl = summary.market_value - total_investment
            if total_investment > 0:
                summary.unrealized_pnl_percent = to_percent_decimal(
                    summary.unrealized_pnl / total_investment * HUNDRED
                )

        self.logger.debug(f"盈亏汇总: {summary}")
        return summary
