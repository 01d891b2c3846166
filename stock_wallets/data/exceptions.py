#!/usr/bin/env python3
"""
数据服务异常类
价格获取与存储层统一的异常处理体系
"""

from typing import Any, Dict, List, Optional


class DataServiceError(Exception):
    """
    数据服务基础异常类
    所有数据服务相关异常的基类
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """
        初始化异常

        Args:
            message: 异常消息
            error_code: 错误代码
            context: 错误上下文信息
        """
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


class ConfigurationError(DataServiceError):
    """配置错误"""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message, "CONFIG_ERROR", {'config_key': config_key})


class ExternalFetchError(DataServiceError):
    """
    外部价格源获取失败

    批量刷新时该异常只影响当前批次，批次内的股票被标记为不可用。
    """

    def __init__(
        self,
        message: str,
        symbols: Optional[List[str]] = None,
        source: Optional[str] = None,
        retries: Optional[int] = None,
    ):
        context: Dict[str, Any] = {}
        if symbols:
            context['symbols'] = list(symbols)
        if source:
            context['source'] = source
        if retries is not None:
            context['retries'] = retries

        super().__init__(message, "EXTERNAL_FETCH_ERROR", context)
        self.symbols = list(symbols or [])


class StorageError(DataServiceError):
    """数据存储错误"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        record_id: Optional[int] = None,
    ):
        context: Dict[str, Any] = {}
        if operation:
            context['operation'] = operation
        if table:
            context['table'] = table
        if record_id is not None:
            context['record_id'] = record_id

        super().__init__(message, "STORAGE_ERROR", context)


class DatabaseConnectionError(StorageError):
    """数据库连接错误"""

    def __init__(self, message: str, db_path: Optional[str] = None):
        super().__init__(message, "database_connection")
        self.error_code = "DB_CONNECTION_ERROR"
        if db_path:
            self.context['db_path'] = db_path


class IntegrityViolation(StorageError):
    """唯一约束或外键约束冲突"""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message, "integrity", table)
        self.error_code = "INTEGRITY_ERROR"
