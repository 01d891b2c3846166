#!/usr/bin/env python3
"""
价格快照缓存

- 以股票代码为键保存 PriceSnapshot，超过 TTL 视为过期
- 保存测试价格时调用 invalidate(symbol) 使该股票重新取价
- 可选的 JSON 文件持久化，进程重启后仍可复用未过期的快照
"""

import json
import logging
import time
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

from .models import PriceSnapshot

logger = logging.getLogger(__name__)


class PriceCache:
    """带 TTL 的价格快照缓存"""

    def __init__(
        self,
        ttl_seconds: int = 300,
        cache_file: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.cache_file = cache_file
        self._clock = clock
        self._entries: Dict[str, Tuple[float, PriceSnapshot]] = {}
        if cache_file:
            self.load()

    def get(self, symbol: str) -> Optional[PriceSnapshot]:
        """获取未过期的快照"""
        key = symbol.upper()
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, snapshot = entry
        if self.ttl_seconds <= 0 or self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return snapshot

    def put(self, snapshot: PriceSnapshot) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries[snapshot.symbol.upper()] = (self._clock(), snapshot)

    def invalidate(self, symbol: str) -> bool:
        """移除单个股票的缓存，返回是否存在"""
        removed = self._entries.pop(symbol.upper(), None) is not None
        if removed:
            logger.debug(f"🗑️ 价格缓存失效: {symbol.upper()}")
        return removed

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, symbol: str) -> bool:
        return self.get(symbol) is not None

    def save(self) -> None:
        """写入 JSON 文件"""
        if not self.cache_file:
            return
        path = Path(self.cache_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            symbol: {'stored_at': stored_at, 'snapshot': snapshot.to_dict()}
            for symbol, (stored_at, snapshot) in self._entries.items()
        }
        path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding='utf-8')

    def load(self) -> int:
        """从 JSON 文件读取，损坏的文件被忽略；返回载入条数"""
        if not self.cache_file:
            return 0
        path = Path(self.cache_file)
        if not path.exists():
            return 0
        try:
            payload = json.loads(path.read_text(encoding='utf-8'))
            for symbol, item in payload.items():
                self._entries[symbol.upper()] = (
                    float(item['stored_at']),
                    PriceSnapshot.from_dict(item['snapshot']),
                )
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"⚠️ 价格缓存文件无法读取，已忽略: {path} ({e})")
            self._entries.clear()
            return 0
        return len(self._entries)
