#!/usr/bin/env python3
"""
日期工具函数

交易日期可以是 ISO 日期（2024-01-05）或时间戳（2024-01-05T10:30:00Z），
统一解析为无时区的 UTC datetime 以便排序与比较。
"""

from datetime import date, datetime, timezone
from typing import Optional, Union

from dateutil import parser as date_parser


DateLike = Union[str, date, datetime]


def parse_transaction_date(value: DateLike) -> datetime:
    """
    解析交易日期

    Raises:
        ValueError: 无法解析的日期
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = date_parser.isoparse(value.strip())
        except (ValueError, OverflowError) as e:
            raise ValueError(f"无效的交易日期: {value!r}") from e
    else:
        raise ValueError(f"无效的交易日期类型: {type(value)}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def normalize_transaction_date(value: DateLike) -> str:
    """规范化为存储用的 ISO 字符串；纯日期保持 YYYY-MM-DD"""
    if isinstance(value, str):
        parse_transaction_date(value)
        return value.strip()
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    raise ValueError(f"无效的交易日期类型: {type(value)}")


def parse_timestamp(value: Optional[Union[str, datetime]]) -> Optional[datetime]:
    """解析数据库中的 created_at/updated_at"""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def days_between(earlier: DateLike, later: DateLike) -> int:
    """两个日期之间的日历天数（按日期部分计算）"""
    start = parse_transaction_date(earlier).date()
    end = parse_transaction_date(later).date()
    return (end - start).days
