#!/usr/bin/env python3
"""
交易模块异常类

所有记账规则违例都在写入之前抛出；存储事务保证失败时不会留下部分写入。
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class WalletError(Exception):
    """
    钱包记账基础异常类
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def __str__(self) -> str:
        base_msg = self.message
        if self.error_code:
            base_msg = f"[{self.error_code}] {base_msg}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg = f"{base_msg} (Context: {context_str})"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'error_code': self.error_code,
            'context': self.context,
        }


class ValidationError(WalletError):
    """输入不合法（百分比之和超过100、价格非正等）"""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        context: Dict[str, Any] = {}
        if field:
            context['field'] = field
        if value is not None:
            context['value'] = value
        super().__init__(message, "VALIDATION_ERROR", context)
        self.field = field


class InsufficientSharesError(ValidationError):
    """卖出数量超过钱包持有股数"""

    def __init__(self, wallet_id: Optional[int], requested, available):
        super().__init__(
            f"Insufficient shares in wallet {wallet_id}: requested {requested}, available {available}",
            field='quantity',
            value=requested,
        )
        self.error_code = "INSUFFICIENT_SHARES"
        self.context.update({'wallet_id': wallet_id, 'available': available})
        self.wallet_id = wallet_id
        self.requested = requested
        self.available = available


class NotFoundError(WalletError):
    """引用的记录不存在"""

    def __init__(self, entity: str, record_id: Any):
        super().__init__(
            f"{entity} {record_id} not found",
            "NOT_FOUND",
            {'entity': entity, 'id': record_id},
        )
        self.entity = entity
        self.record_id = record_id


class ConsistencyViolation(WalletError):
    """
    存储的钱包与交易日志不一致

    这类错误意味着物化视图已损坏，创建时即以 CRITICAL 级别记录。
    """

    def __init__(self, message: str, asset_id: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        context: Dict[str, Any] = {}
        if asset_id is not None:
            context['asset_id'] = asset_id
        if details:
            context.update(details)
        super().__init__(message, "CONSISTENCY_VIOLATION", context)
        self.asset_id = asset_id
        logger.critical(f"🚨 钱包一致性被破坏: {self}")
