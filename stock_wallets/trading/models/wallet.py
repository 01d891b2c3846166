"""
钱包（批次）模型
同一资产、同一买入价、同一止盈目标的买入合并为一个钱包
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import NamedTuple, Optional

from ..utils.date_utils import parse_timestamp
from ..utils.decimal_utils import (
    PRICE_KEY_PRECISION, SHARE_PRECISION, Number,
    to_amount_decimal, to_optional_decimal, to_price_key, to_share_decimal
)


class WalletKey(NamedTuple):
    """钱包复合键 (asset_id, price, profit_target_id)，价格为6位小数的固定精度"""
    asset_id: int
    price: Decimal
    profit_target_id: Optional[int]

    @classmethod
    def of(cls, asset_id: int, price: Number, profit_target_id: Optional[int]) -> 'WalletKey':
        return cls(asset_id, to_price_key(price), profit_target_id)


def shares_for_investment(investment: Decimal, price: Decimal) -> Decimal:
    """一笔投资在钱包价下对应的股数（5位小数）"""
    return to_share_decimal(investment / price)


def cost_of_shares(quantity: Decimal, price: Decimal) -> Decimal:
    """按钱包价计算股数的成本（6位小数）"""
    return to_amount_decimal(quantity * price)


class LotBalance:
    """
    钱包股数与投资额的增减运算

    股数与投资额都是逐笔累加的流水：买入加 round(投资/价格) 股，卖出减去卖出股数与其成本。
    存储的钱包与按日期重放的钱包使用同一套运算，结果与交易的写入顺序无关。
    """

    price: Decimal
    shares: Decimal
    investment: Decimal

    def add_investment(self, amount: Decimal) -> None:
        """买入（负数为撤销买入）"""
        amount = to_amount_decimal(amount)
        self.shares = self.shares + shares_for_investment(amount, self.price)
        self.investment = self.investment + amount

    def remove_quantity(self, quantity: Decimal) -> None:
        self.shares = self.shares - quantity
        self.investment = self.investment - cost_of_shares(quantity, self.price)

    def add_quantity(self, quantity: Decimal) -> None:
        self.shares = self.shares + quantity
        self.investment = self.investment + cost_of_shares(quantity, self.price)

    def apply_split(self, ratio: Decimal) -> None:
        """拆股：shares × r，price ÷ r，investment 不变"""
        self.price = to_price_key(self.price / ratio)
        self.shares = to_share_decimal(self.shares * ratio)

    def is_consistent(self, epsilon: Decimal) -> bool:
        """
        shares × price ≈ investment

        容差 = epsilon × max(1, price) + 一个股数精度单位的价值 + 价格键精度 × shares
        """
        if self.price <= 0:
            return False
        tolerance = (epsilon * max(Decimal('1'), self.price)
                     + self.price * SHARE_PRECISION
                     + self.shares * PRICE_KEY_PRECISION)
        return abs(self.shares * self.price - self.investment) <= tolerance


@dataclass
class Wallet(LotBalance):
    """
    钱包模型 - 物化视图，可由交易日志重放得到

    核心概念：
    - shares ≈ investment / price（见 LotBalance.is_consistent）
    - profit_target_price: 该钱包的止盈价（含佣金折算）
    - investment/shares 降到 0 时删除钱包；之后同键的新买入创建新钱包
    """

    asset_id: int
    price: Decimal
    profit_target_id: Optional[int]
    shares: Decimal
    investment: Decimal
    profit_target_price: Optional[Decimal] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.price = to_price_key(self.price)
        self.shares = to_share_decimal(self.shares)
        self.investment = to_amount_decimal(self.investment)
        self.profit_target_price = to_optional_decimal(self.profit_target_price)

    @property
    def key(self) -> WalletKey:
        return WalletKey(self.asset_id, self.price, self.profit_target_id)

    def market_value(self, current_price: Decimal) -> Decimal:
        return self.shares * current_price

    def unrealized_pnl(self, current_price: Decimal) -> Decimal:
        return self.market_value(current_price) - self.investment

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'asset_id': self.asset_id,
            'price': self.price,
            'profit_target_id': self.profit_target_id,
            'shares': self.shares,
            'investment': self.investment,
            'profit_target_price': self.profit_target_price,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Wallet':
        return cls(
            id=data.get('id'),
            asset_id=data['asset_id'],
            price=data['price'],
            profit_target_id=data.get('profit_target_id'),
            shares=data['shares'],
            investment=data['investment'],
            profit_target_price=data.get('profit_target_price'),
            created_at=parse_timestamp(data.get('created_at')),
            updated_at=parse_timestamp(data.get('updated_at')),
        )

    def __str__(self) -> str:
        tp = f"{self.profit_target_price:.4f}" if self.profit_target_price is not None else "-"
        return (f"钱包{self.id}: {self.shares:.5f}股 @{self.price:.4f} "
                f"投资{self.investment:.2f} 目标{self.profit_target_id} TP {tp}")
