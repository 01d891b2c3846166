#!/usr/bin/env python3
"""
交易记录数据模型
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from ..utils.date_utils import normalize_transaction_date, parse_timestamp, parse_transaction_date
from ..utils.decimal_utils import to_optional_decimal


class TransactionType(Enum):
    """交易类型"""
    BUY = "BUY"
    SELL = "SELL"
    DIVIDEND = "DIVIDEND"
    SPLIT = "SPLIT"
    SLP = "SLP"          # 证券借出收入


class TransactionSignal(Enum):
    """买卖信号（BUY/SELL 必填）"""
    REPULL = "REPULL"
    CUSTOM = "CUSTOM"
    INITIAL = "INITIAL"
    EOM = "EOM"
    ENTAR = "ENTAR"      # 入场目标触发
    TP = "TP"            # 止盈触发


INCOME_TYPES = (TransactionType.DIVIDEND, TransactionType.SLP)


@dataclass
class Transaction:
    """
    交易记录模型

    字段按类型使用：
    - BUY: price, investment, signal；快照 entry_target_price/entry_target_percent
    - SELL: price, quantity, signal；amount 为净收入，cost_basis 为成本，
      wallet_id/wallet_price/profit_target_id 记录卖出时的钱包
    - DIVIDEND/SLP: amount
    - SPLIT: split_ratio
    """
    asset_id: int
    transaction_type: TransactionType
    transaction_date: str                       # ISO 日期或时间戳
    signal: Optional[TransactionSignal] = None
    price: Optional[Decimal] = None
    quantity: Optional[Decimal] = None
    investment: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    split_ratio: Optional[Decimal] = None
    entry_target_price: Optional[Decimal] = None
    entry_target_percent: Optional[Decimal] = None
    cost_basis: Optional[Decimal] = None
    wallet_id: Optional[int] = None
    wallet_price: Optional[Decimal] = None
    profit_target_id: Optional[int] = None
    notes: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        """数据验证和类型转换"""
        if not isinstance(self.transaction_type, TransactionType):
            self.transaction_type = TransactionType(str(self.transaction_type).upper())
        if self.signal is not None and not isinstance(self.signal, TransactionSignal):
            self.signal = TransactionSignal(str(self.signal).upper())
        self.transaction_date = normalize_transaction_date(self.transaction_date)

        for name in ('price', 'quantity', 'investment', 'amount', 'split_ratio',
                     'entry_target_price', 'entry_target_percent', 'cost_basis', 'wallet_price'):
            setattr(self, name, to_optional_decimal(getattr(self, name)))

        self._validate()

    def _validate(self) -> None:
        tx_type = self.transaction_type
        if tx_type in (TransactionType.BUY, TransactionType.SELL) and self.signal is None:
            raise ValueError(f"{tx_type.value} 交易必须指定信号")

        if tx_type == TransactionType.BUY:
            _require_positive('price', self.price)
            _require_positive('investment', self.investment)
        elif tx_type == TransactionType.SELL:
            _require_positive('price', self.price)
            _require_positive('quantity', self.quantity)
        elif tx_type in INCOME_TYPES:
            if self.amount is None or self.amount < 0:
                raise ValueError(f"{tx_type.value} 金额不能为空或负数: {self.amount}")
        elif tx_type == TransactionType.SPLIT:
            _require_positive('split_ratio', self.split_ratio)

    @property
    def is_buy(self) -> bool:
        return self.transaction_type == TransactionType.BUY

    @property
    def is_sell(self) -> bool:
        return self.transaction_type == TransactionType.SELL

    @property
    def is_split(self) -> bool:
        return self.transaction_type == TransactionType.SPLIT

    @property
    def parsed_date(self) -> datetime:
        return parse_transaction_date(self.transaction_date)

    @property
    def sort_key(self) -> Tuple[datetime, int]:
        """按日期升序，同日按ID"""
        return (self.parsed_date, self.id or 0)

    @property
    def total_shares(self) -> Optional[Decimal]:
        """BUY 的总股数（未舍入）"""
        if not self.is_buy or not self.price:
            return None
        return self.investment / self.price

    @property
    def realized_pnl(self) -> Optional[Decimal]:
        """SELL 的已实现盈亏 = 净收入 - 成本"""
        if not self.is_sell or self.amount is None or self.cost_basis is None:
            return None
        return self.amount - self.cost_basis

    def to_dict(self) -> dict:
        """转换为字典格式（存储用）"""
        return {
            'id': self.id,
            'asset_id': self.asset_id,
            'transaction_type': self.transaction_type.value,
            'transaction_date': self.transaction_date,
            'signal': self.signal.value if self.signal else None,
            'price': self.price,
            'quantity': self.quantity,
            'investment': self.investment,
            'amount': self.amount,
            'split_ratio': self.split_ratio,
            'entry_target_price': self.entry_target_price,
            'entry_target_percent': self.entry_target_percent,
            'cost_basis': self.cost_basis,
            'wallet_id': self.wallet_id,
            'wallet_price': self.wallet_price,
            'profit_target_id': self.profit_target_id,
            'notes': self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Transaction':
        """从字典创建实例"""
        return cls(
            id=data.get('id'),
            asset_id=data['asset_id'],
            transaction_type=data['transaction_type'],
            transaction_date=data['transaction_date'],
            signal=data.get('signal'),
            price=data.get('price'),
            quantity=data.get('quantity'),
            investment=data.get('investment'),
            amount=data.get('amount'),
            split_ratio=data.get('split_ratio'),
            entry_target_price=data.get('entry_target_price'),
            entry_target_percent=data.get('entry_target_percent'),
            cost_basis=data.get('cost_basis'),
            wallet_id=data.get('wallet_id'),
            wallet_price=data.get('wallet_price'),
            profit_target_id=data.get('profit_target_id'),
            notes=data.get('notes'),
            created_at=parse_timestamp(data.get('created_at')),
            updated_at=parse_timestamp(data.get('updated_at')),
        )

    def __str__(self) -> str:
        if self.is_buy:
            detail = f"${self.investment} @ {self.price}"
        elif self.is_sell:
            detail = f"{self.quantity}股 @ {self.price}"
        elif self.is_split:
            detail = f"1:{self.split_ratio}"
        else:
            detail = f"${self.amount}"
        return f"#{self.id} {self.transaction_date} {self.transaction_type.value} {detail}"


def _require_positive(name: str, value: Optional[Decimal]) -> None:
    if value is None or value <= 0:
        raise ValueError(f"{name} 必须大于0: {value}")
