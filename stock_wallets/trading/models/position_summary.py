"""
持仓汇总模型
从钱包与交易动态计算的盈亏、现金流与资产总览
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from .signals import AssetSignals
from .wallet import Wallet


@dataclass
class CashFlowSummary:
    """
    现金流汇总

    - out_of_pocket: 自付资金（买入时现金不足的部分累计）
    - cash_balance: 卖出与收入积累、尚未再投资的现金
    - available: 当年预算存在时 = max(0, max_oop - oop) + cash，否则为 None
    - roic_percent: (cash + 持仓市值 − oop) / oop × 100；没有市值或 oop 为0时为 None
    """

    out_of_pocket: Decimal
    cash_balance: Decimal
    max_oop: Optional[Decimal] = None
    available: Optional[Decimal] = None
    year: Optional[int] = None
    roic_percent: Optional[Decimal] = None

    def to_dict(self) -> dict:
        return {
            'out_of_pocket': str(self.out_of_pocket),
            'cash_balance': str(self.cash_balance),
            'max_oop': str(self.max_oop) if self.max_oop is not None else None,
            'available': str(self.available) if self.available is not None else None,
            'year': self.year,
            'roic_percent': str(self.roic_percent) if self.roic_percent is not None else None,
        }


@dataclass
class WalletPnL:
    """单个钱包的未实现盈亏"""
    wallet: Wallet
    market_value: Decimal
    unrealized_pnl: Decimal
    unrealized_pnl_percent: Optional[Decimal]


@dataclass
class PnLSummary:
    """资产级盈亏汇总"""

    realized_pnl: Decimal
    realized_cost_basis: Decimal
    realized_pnl_percent: Optional[Decimal]
    total_shares: Decimal
    total_investment: Decimal
    shares_by_target: Dict[Optional[int], Decimal] = field(default_factory=dict)
    market_value: Optional[Decimal] = None
    unrealized_pnl: Optional[Decimal] = None
    unrealized_pnl_percent: Optional[Decimal] = None
    wallets: List[WalletPnL] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.total_shares > 0

    def __str__(self) -> str:
        unrealized = f"{self.unrealized_pnl:.2f}" if self.unrealized_pnl is not None else "-"
        return (f"{self.total_shares:.5f}股 投资{self.total_investment:.2f} "
                f"已实现{self.realized_pnl:.2f} 未实现{unrealized}")


@dataclass
class AssetOverview:
    """资产总览：钱包 + 盈亏 + 现金流 + 信号"""

    asset_id: int
    symbol: str
    wallets: List[Wallet]
    pnl: PnLSummary
    cash_flow: CashFlowSummary
    signals: AssetSignals
