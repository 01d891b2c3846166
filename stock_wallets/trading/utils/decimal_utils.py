#!/usr/bin/env python3
"""
金融计算的Decimal工具函数
处理float与Decimal之间的转换，保证精度

钱包（批次）的复合键依赖固定精度的价格表示，
因此所有键价格都必须经过 to_price_key 量化，避免浮点相等比较。
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Union


Number = Union[float, int, str, Decimal]


def to_decimal(value: Number, precision: int = 4) -> Decimal:
    """
    将各种数值类型安全转换为Decimal

    Args:
        value: 要转换的值
        precision: 小数位精度，仅对float生效

    Returns:
        Decimal: 转换后的Decimal值
    """
    if isinstance(value, bool):
        raise ValueError(f"无法将布尔值 {value} 转换为Decimal")

    if isinstance(value, Decimal):
        return value

    if isinstance(value, int):
        return Decimal(value)

    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"无效的数值字符串: {value!r}")

    if isinstance(value, float):
        # 避免float精度问题，先转为字符串再转Decimal
        return Decimal(f"{value:.{precision + 2}f}").quantize(
            Decimal(1).scaleb(-precision),
            rounding=ROUND_HALF_UP
        )

    raise ValueError(f"无法将类型 {type(value)} 转换为Decimal")


def to_optional_decimal(value: Optional[Number], precision: int = 6) -> Optional[Decimal]:
    """None 保持为 None，其余转换为Decimal（用于存储层读出的可空字段）"""
    if value is None or value == '':
        return None
    return to_decimal(value, precision=precision)


def quantize(value: Decimal, step: Decimal) -> Decimal:
    """按给定步长四舍五入（ROUND_HALF_UP）"""
    return value.quantize(step, rounding=ROUND_HALF_UP)


def to_share_decimal(value: Number) -> Decimal:
    """股数精度：5位小数"""
    return quantize(to_decimal(value, precision=SHARE_PLACES), SHARE_PRECISION)


def to_price_key(value: Number) -> Decimal:
    """
    钱包键价格：6位小数的固定精度表示

    同一价格的不同写法（10、10.0、'10.000000'）必须得到同一个键。
    """
    return quantize(to_decimal(value, precision=PRICE_KEY_PLACES), PRICE_KEY_PRECISION)


def to_amount_decimal(value: Number) -> Decimal:
    """内部金额精度：6位小数（展示时再舍入到2位）"""
    return quantize(to_decimal(value, precision=AMOUNT_PLACES), AMOUNT_PRECISION)


def to_percent_decimal(value: Number) -> Decimal:
    """百分比精度：4位小数"""
    return quantize(to_decimal(value, precision=4), PERCENTAGE_PRECISION)


def format_decimal(value: Optional[Decimal], precision: int = 2) -> str:
    """
    格式化Decimal为字符串显示

    Args:
        value: Decimal值，None显示为 '-'
        precision: 显示精度
    """
    if value is None:
        return "-"
    return f"{value:.{precision}f}"


def format_financial_amount(value: Optional[Decimal]) -> str:
    """格式化金额显示（2位小数）"""
    return format_decimal(value, precision=2)


def format_quantity(value: Optional[Decimal]) -> str:
    """格式化股数显示（5位小数）"""
    return format_decimal(value, precision=SHARE_PLACES)


def format_price(value: Optional[Decimal]) -> str:
    """格式化价格显示（4位小数）"""
    return format_decimal(value, precision=4)


def format_percent(value: Optional[Decimal]) -> str:
    """格式化百分比显示（2位小数，带%）"""
    if value is None:
        return "-"
    return f"{value:.2f}%"


# 常用的精度常量
SHARE_PLACES = 5
PRICE_KEY_PLACES = 6
AMOUNT_PLACES = 6

SHARE_PRECISION = Decimal('0.00001')           # 股数：5位小数
PRICE_KEY_PRECISION = Decimal('0.000001')      # 钱包键价格：6位小数
AMOUNT_PRECISION = Decimal('0.000001')         # 内部金额：6位小数
PERCENTAGE_PRECISION = Decimal('0.0001')       # 百分比：4位小数

HUNDRED = Decimal('100')
