#!/usr/bin/env python3
"""
价格服务
负责协调价格下载器与价格缓存，按批刷新一组股票的价格快照

- 每批 PriceFeedConfig.batch_size 只股票
- 单批失败只影响该批，批内股票标记为不可用，刷新总会完成
- 每批开始前通过 progress_callback 报告进度
"""

import logging
from typing import Callable, Iterable, List, Optional

from .config import PriceFeedConfig
from .downloaders import BaseDownloader, YFinancePriceDownloader
from .exceptions import ExternalFetchError
from .models import BatchFetchResult, PriceSnapshot
from .price_cache import PriceCache

ProgressCallback = Callable[[int, int, str], None]


class PriceService:
    """批量价格刷新服务"""

    def __init__(
        self,
        source: Optional[BaseDownloader] = None,
        cache: Optional[PriceCache] = None,
        config: Optional[PriceFeedConfig] = None,
    ):
        """
        Args:
            source: 价格源，默认 yfinance
            cache: 价格缓存，默认按配置创建
            config: 价格源配置
        """
        self.config = config or PriceFeedConfig()
        self.config.validate()
        self.source = source or YFinancePriceDownloader(
            max_retries=self.config.max_retries,
            base_delay=self.config.base_delay,
            timeout=self.config.timeout,
            history_days=self.config.history_days,
        )
        self.cache = cache if cache is not None else PriceCache(
            ttl_seconds=self.config.cache_ttl_seconds,
            cache_file=self.config.cache_file,
        )
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def make_batches(symbols: List[str], batch_size: int) -> List[List[str]]:
        """按固定大小切分，最后一批可以不足"""
        return [symbols[i:i + batch_size] for i in range(0, len(symbols), batch_size)]

    def refresh(
        self,
        symbols: Iterable[str],
        progress_callback: Optional[ProgressCallback] = None,
        use_cache: bool = True,
    ) -> BatchFetchResult:
        """
        批量刷新价格快照

        Args:
            symbols: 股票代码（重复项与大小写会被规范化）
            progress_callback: 回调 (批次序号, 总批次, 消息)
            use_cache: 是否优先使用未过期的缓存

        Returns:
            BatchFetchResult
        """
        ordered: List[str] = []
        for symbol in symbols:
            key = symbol.strip().upper()
            if key and key not in ordered:
                ordered.append(key)

        result = BatchFetchResult()
        pending: List[str] = []
        for symbol in ordered:
            cached = self.cache.get(symbol) if use_cache else None
            if cached is not None:
                result.snapshots[symbol] = cached
                result.from_cache.append(symbol)
            else:
                pending.append(symbol)

        batches = self.make_batches(pending, self.config.batch_size)
        result.total_batches = len(batches)
        self.logger.info(
            f"🎯 开始刷新价格: {len(ordered)} 只股票, 缓存命中 {len(result.from_cache)}, 共 {len(batches)} 批"
        )

        for index, batch in enumerate(batches, start=1):
            message = f"Fetching batch {index} of {len(batches)}"
            if progress_callback:
                progress_callback(index, len(batches), message)
            self.logger.info(f"进度: [{index}/{len(batches)}] {', '.join(batch)}")

            try:
                fetched = self.source.fetch_snapshots(batch)
            except ExternalFetchError as e:
                self._mark_failed(result, batch, str(e))
                continue
            except Exception as e:
                self.logger.error(f"价格源异常 {batch}: {e}", exc_info=True)
                self._mark_failed(result, batch, f"unexpected error: {e}")
                continue

            for symbol in batch:
                snapshot = fetched.get(symbol)
                if snapshot is None or not snapshot.has_price:
                    result.unavailable.append(symbol)
                    result.errors.setdefault(symbol, "no price returned")
                    if snapshot is not None:
                        result.snapshots[symbol] = snapshot
                    continue
                result.snapshots[symbol] = snapshot
                self.cache.put(snapshot)

        self.cache.save()
        self.logger.info(
            f"✅ 价格刷新完成，成功: {len(ordered) - len(result.unavailable)}/{len(ordered)}"
            f"，失败批次: {result.failed_batches}"
        )
        return result

    def _mark_failed(self, result: BatchFetchResult, batch: List[str], error: str) -> None:
        self.logger.warning(f"⚠️ 批次获取失败，标记为不可用: {', '.join(batch)} ({error})")
        result.failed_batches += 1
        for symbol in batch:
            result.unavailable.append(symbol)
            result.errors[symbol] = error

    def get_snapshot(self, symbol: str) -> Optional[PriceSnapshot]:
        """获取单只股票的快照（缓存优先）"""
        return self.refresh([symbol]).get(symbol)

    def invalidate(self, symbol: str) -> None:
        """使单只股票的缓存失效（例如保存了新的测试价格）"""
        self.cache.invalidate(symbol)
        self.cache.save()
