#!/usr/bin/env python3
"""
资产与目标配置模型

- Asset: 被追踪的股票
- EntryTarget: 入场目标（价格低于最近买入价的百分比），排序最靠前的为主入场目标
- ProfitTarget: 止盈目标（价格高于买入价的百分比），每个目标对应一组钱包
- YearlyBudget: 每年的最大自付资金（Max OOP），仅用于报表
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from ..utils.date_utils import parse_timestamp
from ..utils.decimal_utils import HUNDRED, to_optional_decimal


class AssetStatus(Enum):
    """资产状态；HIDDEN/ARCHIVED 不参与信号扫描但保留历史"""
    ACTIVE = "ACTIVE"
    HIDDEN = "HIDDEN"
    ARCHIVED = "ARCHIVED"


@dataclass
class Asset:
    """股票资产"""
    symbol: str                              # 股票代码（唯一，大写）
    name: Optional[str] = None
    commission: Optional[Decimal] = None     # 佣金百分比，0 <= c < 100
    test_price: Optional[Decimal] = None     # 无行情时使用的手动价格
    status: AssetStatus = AssetStatus.ACTIVE
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.symbol or not str(self.symbol).strip():
            raise ValueError("股票代码不能为空")
        self.symbol = str(self.symbol).strip().upper()
        self.commission = to_optional_decimal(self.commission)
        self.test_price = to_optional_decimal(self.test_price)
        if not isinstance(self.status, AssetStatus):
            self.status = AssetStatus(self.status)

        if self.commission is not None and (self.commission < 0 or self.commission >= HUNDRED):
            raise ValueError(f"佣金百分比必须在0-100之间: {self.commission}")
        if self.test_price is not None and self.test_price < 0:
            raise ValueError(f"测试价格不能为负数: {self.test_price}")

    @property
    def commission_percent(self) -> Decimal:
        """未设置佣金时按0计算"""
        return self.commission if self.commission is not None else Decimal('0')

    @property
    def is_active(self) -> bool:
        return self.status == AssetStatus.ACTIVE

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'symbol': self.symbol,
            'name': self.name,
            'commission': self.commission,
            'test_price': self.test_price,
            'status': self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Asset':
        return cls(
            id=data.get('id'),
            symbol=data['symbol'],
            name=data.get('name'),
            commission=data.get('commission'),
            test_price=data.get('test_price'),
            status=data.get('status') or AssetStatus.ACTIVE.value,
            created_at=parse_timestamp(data.get('created_at')),
            updated_at=parse_timestamp(data.get('updated_at')),
        )

    def __str__(self) -> str:
        return f"{self.symbol} ({self.status.value})"


@dataclass
class EntryTarget:
    """入场目标：当前价相对最近买入价下跌 target_percent 时触发"""
    asset_id: int
    target_percent: Decimal                  # 以正数存储，0 < p < 100
    sort_order: int = 0
    name: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self):
        self.target_percent = abs(to_optional_decimal(self.target_percent) or Decimal('0'))
        if self.target_percent <= 0 or self.target_percent >= HUNDRED:
            raise ValueError(f"入场目标百分比必须在0-100之间: {self.target_percent}")

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'asset_id': self.asset_id,
            'target_percent': self.target_percent,
            'sort_order': self.sort_order,
            'name': self.name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'EntryTarget':
        return cls(
            id=data.get('id'),
            asset_id=data['asset_id'],
            target_percent=data['target_percent'],
            sort_order=data.get('sort_order') or 0,
            name=data.get('name'),
        )


@dataclass
class ProfitTarget:
    """止盈目标"""
    asset_id: int
    target_percent: Decimal                  # 高于买入价的百分比，> 0
    allocation_percent: Optional[Decimal] = None  # 默认分配比例 0..100
    sort_order: int = 0
    name: Optional[str] = None
    id: Optional[int] = None

    def __post_init__(self):
        self.target_percent = to_optional_decimal(self.target_percent)
        self.allocation_percent = to_optional_decimal(self.allocation_percent)
        if self.target_percent is None or self.target_percent <= 0:
            raise ValueError(f"止盈目标百分比必须大于0: {self.target_percent}")
        if self.allocation_percent is not None and not (0 <= self.allocation_percent <= HUNDRED):
            raise ValueError(f"默认分配比例必须在0-100之间: {self.allocation_percent}")

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'asset_id': self.asset_id,
            'target_percent': self.target_percent,
            'allocation_percent': self.allocation_percent,
            'sort_order': self.sort_order,
            'name': self.name,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ProfitTarget':
        return cls(
            id=data.get('id'),
            asset_id=data['asset_id'],
            target_percent=data['target_percent'],
            allocation_percent=data.get('allocation_percent'),
            sort_order=data.get('sort_order') or 0,
            name=data.get('name'),
        )

    def __str__(self) -> str:
        return f"PT+{self.target_percent}%"


@dataclass
class YearlyBudget:
    """年度最大自付资金"""
    asset_id: int
    year: int
    amount: Decimal
    id: Optional[int] = None
    created_at: Optional[datetime] = field(default=None, compare=False)

    def __post_init__(self):
        self.year = int(self.year)
        self.amount = to_optional_decimal(self.amount)
        if self.amount is None or self.amount < 0:
            raise ValueError(f"年度预算不能为负数: {self.amount}")

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'asset_id': self.asset_id,
            'year': self.year,
            'amount': self.amount,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'YearlyBudget':
        return cls(
            id=data.get('id'),
            asset_id=data['asset_id'],
            year=data['year'],
            amount=data['amount'],
            created_at=parse_timestamp(data.get('created_at')),
        )
