"""
买入分配模型
记录一笔买入在各止盈目标之间的分配，以及分配写入的钱包
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..utils.decimal_utils import to_optional_decimal


@dataclass
class TransactionAllocation:
    """
    买入分配记录

    核心概念：
    - 每笔买入对每个参与分配的止盈目标写一条记录
    - percentage: 分配百分比；同一笔买入的百分比之和 <= 100
    - shares: 分配到该目标的股数（5位小数）
    - wallet_id: 该分配并入的钱包
    """

    transaction_id: int
    profit_target_id: Optional[int]        # None 表示无止盈目标时的隐式目标
    wallet_id: Optional[int]
    percentage: Decimal
    shares: Decimal
    id: Optional[int] = None

    def __post_init__(self):
        self.percentage = to_optional_decimal(self.percentage)
        self.shares = to_optional_decimal(self.shares)

    def investment_of(self, buy_investment: Decimal) -> Decimal:
        """该分配对应的投资金额"""
        return buy_investment * self.percentage / Decimal('100')

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'transaction_id': self.transaction_id,
            'profit_target_id': self.profit_target_id,
            'wallet_id': self.wallet_id,
            'percentage': self.percentage,
            'shares': self.shares,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'TransactionAllocation':
        return cls(
            id=data.get('id'),
            transaction_id=data['transaction_id'],
            profit_target_id=data.get('profit_target_id'),
            wallet_id=data.get('wallet_id'),
            percentage=data['percentage'],
            shares=data['shares'],
        )

    def __str__(self) -> str:
        return (f"分配{self.id}: 交易{self.transaction_id} -> 目标{self.profit_target_id} "
                f"{self.percentage}% {self.shares}股 (钱包{self.wallet_id})")
