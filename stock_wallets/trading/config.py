#!/usr/bin/env python3
"""
交易模块配置
定义钱包记账相关的配置选项和默认值
"""

from enum import Enum
from dataclasses import dataclass
from decimal import Decimal

from .utils.decimal_utils import to_decimal


class IncomePolicy(Enum):
    """分红/SLP 收入的现金流处理策略"""
    CASH_ONLY = "cash_only"        # 收入仅增加现金余额（默认）
    REDUCE_OOP = "reduce_oop"      # 收入先冲减自付资金，剩余部分进入现金余额


class TargetDeletionPolicy(Enum):
    """删除仍持有钱包的止盈目标时的策略"""
    BLOCK = "block"                # 拒绝删除（默认）
    REDISTRIBUTE = "redistribute"  # 将其钱包平均转移到其余止盈目标


@dataclass
class TradingConfig:
    """交易模块配置"""

    # 精度配置
    share_precision: int = 5          # 股数精度（小数位）
    price_key_precision: int = 6      # 钱包键价格精度（小数位）
    amount_precision: int = 2         # 展示金额精度（小数位）

    # 判零与一致性校验误差
    share_epsilon: Decimal = Decimal('0.0000001')
    currency_epsilon: Decimal = Decimal('0.0001')
    consistency_epsilon: Decimal = Decimal('0.0001')

    # 记账策略
    income_policy: IncomePolicy = IncomePolicy.CASH_ONLY
    target_deletion_policy: TargetDeletionPolicy = TargetDeletionPolicy.BLOCK
    require_explicit_allocation: bool = True   # 买入时必须至少指定一个分配比例
    verify_after_mutation: bool = False        # 每次变更后用日志重放交叉校验钱包

    # 信号配置
    dip_lookback_days: int = 5                 # N日回撤的回看天数
    days_since_warning: int = 25               # 距上次买入天数：黄色阈值
    days_since_alert: int = 31                 # 距上次买入天数：红色阈值
    pct_to_target_near: Decimal = Decimal('-1')  # 距止盈百分比：接近阈值

    # 输入校验限制配置
    max_symbol_length: int = 20
    max_commission_percent: Decimal = Decimal('10')
    max_price_per_share: Decimal = Decimal('1000000')

    def __post_init__(self):
        """配置验证"""
        self.share_epsilon = to_decimal(self.share_epsilon, precision=10)
        self.currency_epsilon = to_decimal(self.currency_epsilon, precision=10)
        self.consistency_epsilon = to_decimal(self.consistency_epsilon, precision=10)
        self.pct_to_target_near = to_decimal(self.pct_to_target_near)
        self.max_commission_percent = to_decimal(self.max_commission_percent)
        self.max_price_per_share = to_decimal(self.max_price_per_share)

        if self.dip_lookback_days < 1:
            raise ValueError("回看天数必须大于0")

        if self.days_since_warning > self.days_since_alert:
            raise ValueError("黄色阈值不能大于红色阈值")

        if self.share_precision < 0 or self.share_precision > 10:
            raise ValueError("股数精度必须在0-10之间")

        if self.max_commission_percent < 0 or self.max_commission_percent >= 100:
            raise ValueError("佣金上限必须在0-100之间")

    @classmethod
    def get_default(cls) -> 'TradingConfig':
        """获取默认配置"""
        return cls()

    def get_income_policy_description(self) -> str:
        """获取收入策略描述"""
        descriptions = {
            IncomePolicy.CASH_ONLY: (
                "仅现金：分红与SLP收入只增加现金余额，"
                "自付资金(OOP)只会随资金不足的买入增长。"
            ),
            IncomePolicy.REDUCE_OOP: (
                "冲减自付：分红与SLP收入先偿还自付资金，"
                "自付资金降为0后剩余部分进入现金余额。"
            ),
        }
        return descriptions.get(self.income_policy, "未知收入策略")

    def format_amount(self, amount: Decimal) -> str:
        """格式化金额为字符串"""
        return f"{amount:.{self.amount_precision}f}"

    def to_dict(self) -> dict:
        """转换为字典"""
        return {
            'share_precision': self.share_precision,
            'price_key_precision': self.price_key_precision,
            'amount_precision': self.amount_precision,
            'share_epsilon': str(self.share_epsilon),
            'currency_epsilon': str(self.currency_epsilon),
            'consistency_epsilon': str(self.consistency_epsilon),
            'income_policy': self.income_policy.value,
            'target_deletion_policy': self.target_deletion_policy.value,
            'require_explicit_allocation': self.require_explicit_allocation,
            'verify_after_mutation': self.verify_after_mutation,
            'dip_lookback_days': self.dip_lookback_days,
            'days_since_warning': self.days_since_warning,
            'days_since_alert': self.days_since_alert,
            'pct_to_target_near': str(self.pct_to_target_near),
            'max_symbol_length': self.max_symbol_length,
            'max_commission_percent': str(self.max_commission_percent),
            'max_price_per_share': str(self.max_price_per_share),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'TradingConfig':
        """从字典创建配置"""
        return cls(
            share_precision=data.get('share_precision', 5),
            price_key_precision=data.get('price_key_precision', 6),
            amount_precision=data.get('amount_precision', 2),
            share_epsilon=data.get('share_epsilon', '0.0000001'),
            currency_epsilon=data.get('currency_epsilon', '0.0001'),
            consistency_epsilon=data.get('consistency_epsilon', '0.0001'),
            income_policy=IncomePolicy(data.get('income_policy', 'cash_only')),
            target_deletion_policy=TargetDeletionPolicy(data.get('target_deletion_policy', 'block')),
            require_explicit_allocation=data.get('require_explicit_allocation', True),
            verify_after_mutation=data.get('verify_after_mutation', False),
            dip_lookback_days=data.get('dip_lookback_days', 5),
            days_since_warning=data.get('days_since_warning', 25),
            days_since_alert=data.get('days_since_alert', 31),
            pct_to_target_near=data.get('pct_to_target_near', '-1'),
            max_symbol_length=data.get('max_symbol_length', 20),
            max_commission_percent=data.get('max_commission_percent', '10'),
            max_price_per_share=data.get('max_price_per_share', '1000000'),
        )


# 默认配置实例
DEFAULT_TRADING_CONFIG = TradingConfig.get_default()
