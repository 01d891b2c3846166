#!/usr/bin/env python3
"""
基础价格下载器抽象类
封装通用的重试机制和日志功能
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List

from requests import exceptions as req_exc

from ..exceptions import ExternalFetchError
from ..models import PriceSnapshot


class BaseDownloader(ABC):
    """
    基础下载器抽象类，提供通用的重试和日志功能

    子类实现 fetch_snapshots(symbols) -> {symbol: PriceSnapshot}，允许部分结果；
    整批失败时抛出 ExternalFetchError。
    """

    source_name = "base"

    def __init__(self, max_retries: int = 3, base_delay: float = 2.0, timeout: int = 30):
        """
        Args:
            max_retries: 最大尝试次数
            base_delay: 基础延迟时间（秒）
            timeout: 单次请求超时（秒）
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    @abstractmethod
    def fetch_snapshots(self, symbols: List[str]) -> Dict[str, PriceSnapshot]:
        """获取一批股票的价格快照"""

    def _retry_with_backoff(self, func: Callable, symbols: List[str]) -> Any:
        """
        带退避策略的重试机制

        Args:
            func: 要执行的函数
            symbols: 本批股票代码（用于日志和异常上下文）
        """
        label = ",".join(symbols)
        for attempt in range(self.max_retries):
            try:
                return func()
            except Exception as e:
                if self._is_api_error_retryable(e) and attempt < self.max_retries - 1:
                    delay = self.base_delay * (2**attempt)  # 指数退避
                    self.logger.warning(
                        f"⏰ {label} 价格请求失败，等待 {delay} 秒后重试 (尝试 {attempt + 1}/{self.max_retries})"
                    )
                    time.sleep(delay)
                    continue
                if isinstance(e, ExternalFetchError):
                    raise
                raise ExternalFetchError(
                    str(e), symbols=symbols, source=self.source_name, retries=attempt
                ) from e

        raise ExternalFetchError(
            f"{label} 重试 {self.max_retries} 次后仍然失败", symbols=symbols, source=self.source_name
        )

    def _is_api_error_retryable(self, error: Exception) -> bool:
        """判断是否属于可重试错误。

        - HTTP 429（限流）
        - HTTP 5xx 常见临时错误：502/503/504
        - 超时与连接错误（requests Timeout/ConnectionError）
        """
        if isinstance(error, (req_exc.Timeout, req_exc.ConnectionError, TimeoutError)):
            return True

        resp = getattr(error, "response", None)
        try:
            status = int(getattr(resp, "status_code", 0)) if resp is not None else 0
        except (TypeError, ValueError):
            status = 0
        if status in (429, 502, 503, 504):
            return True

        # 字符串兜底（仅必要的几项，避免过度匹配）
        msg = str(error).lower()
        substrings = ("429", "too many requests", "rate limit", "timeout", "timed out")
        return any(s in msg for s in substrings)
