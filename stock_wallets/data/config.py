#!/usr/bin/env python3
"""
服务配置管理

职责：
- 统一管理价格源、数据库与日志等配置项
- 从环境变量/字典加载配置，提供便捷的默认值

说明：
- 仅包含纯配置与序列化逻辑，不包含 I/O 与业务流程
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError


ENV_PREFIX = 'STOCK_WALLETS_'


@dataclass
class PriceFeedConfig:
    """价格源配置"""

    batch_size: int = 5              # 每批请求的股票数
    timeout: int = 30                # 单次外部请求超时（秒）
    max_retries: int = 3
    base_delay: float = 2.0          # 指数退避的基础延迟（秒）
    history_days: int = 10           # 拉取的历史收盘天数（需覆盖N日回撤的回看窗口）
    cache_ttl_seconds: int = 300     # 价格缓存有效期；0 表示不缓存
    cache_file: Optional[str] = None  # 价格缓存持久化文件（JSON）

    def validate(self) -> None:
        if self.batch_size < 1:
            raise ConfigurationError("batch_size must be >= 1", 'batch_size')
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive", 'timeout')
        if self.max_retries < 1:
            raise ConfigurationError("max_retries must be >= 1", 'max_retries')
        if self.history_days < 1:
            raise ConfigurationError("history_days must be >= 1", 'history_days')
        if self.cache_ttl_seconds < 0:
            raise ConfigurationError("cache_ttl_seconds must be >= 0", 'cache_ttl_seconds')


@dataclass
class DatabaseConfig:
    """数据库配置"""

    db_path: str = "database/wallets.db"
    db_type: str = "sqlite"
    connection_timeout: int = 30
    enable_foreign_keys: bool = True


@dataclass
class ServiceConfig:
    """服务主配置"""

    price_feed: PriceFeedConfig = field(default_factory=PriceFeedConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    # 日志配置
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
    enable_file_logging: bool = False
    log_file_path: str = "stock_wallets.log"

    @classmethod
    def from_env(cls, db_path: Optional[str] = None) -> 'ServiceConfig':
        """
        从环境变量创建配置

        Args:
            db_path: 数据库路径，如果提供将覆盖环境变量

        Returns:
            配置实例
        """
        config = cls()

        # 数据库配置
        if db_path:
            config.database.db_path = db_path
        else:
            config.database.db_path = _env('DB_PATH', config.database.db_path)
        config.database.db_type = _env('DB_TYPE', config.database.db_type)

        # 价格源配置
        feed = config.price_feed
        feed.batch_size = int(_env('BATCH_SIZE', feed.batch_size))
        feed.timeout = int(_env('PRICE_TIMEOUT', feed.timeout))
        feed.max_retries = int(_env('MAX_RETRIES', feed.max_retries))
        feed.base_delay = float(_env('BASE_DELAY', feed.base_delay))
        feed.history_days = int(_env('HISTORY_DAYS', feed.history_days))
        feed.cache_ttl_seconds = int(_env('CACHE_TTL', feed.cache_ttl_seconds))
        feed.cache_file = _env('CACHE_FILE', feed.cache_file)

        # 日志配置
        config.log_level = _env('LOG_LEVEL', config.log_level)
        config.enable_file_logging = _env('ENABLE_FILE_LOG', 'false').lower() == 'true'
        config.log_file_path = _env('LOG_FILE', config.log_file_path)

        feed.validate()
        return config

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'ServiceConfig':
        """从字典创建配置，未知键被忽略"""
        config = cls()

        for key, value in config_dict.get('price_feed', {}).items():
            if hasattr(config.price_feed, key):
                setattr(config.price_feed, key, value)

        for key, value in config_dict.get('database', {}).items():
            if hasattr(config.database, key):
                setattr(config.database, key, value)

        for key in ['log_level', 'log_format', 'enable_file_logging', 'log_file_path']:
            if key in config_dict:
                setattr(config, key, config_dict[key])

        config.price_feed.validate()
        return config

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            'price_feed': {
                'batch_size': self.price_feed.batch_size,
                'timeout': self.price_feed.timeout,
                'max_retries': self.price_feed.max_retries,
                'base_delay': self.price_feed.base_delay,
                'history_days': self.price_feed.history_days,
                'cache_ttl_seconds': self.price_feed.cache_ttl_seconds,
                'cache_file': self.price_feed.cache_file,
            },
            'database': {
                'db_path': self.database.db_path,
                'db_type': self.database.db_type,
                'connection_timeout': self.database.connection_timeout,
                'enable_foreign_keys': self.database.enable_foreign_keys,
            },
            'log_level': self.log_level,
            'log_format': self.log_format,
            'enable_file_logging': self.enable_file_logging,
            'log_file_path': self.log_file_path,
        }


def _env(name: str, default: Any) -> Any:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


# 预定义配置模板
DEFAULT_CONFIG = ServiceConfig()

TESTING_CONFIG = ServiceConfig(
    price_feed=PriceFeedConfig(max_retries=1, base_delay=0, cache_ttl_seconds=0),
    database=DatabaseConfig(db_path=":memory:"),
)


def get_config(config_name: str = "default") -> ServiceConfig:
    """
    获取预定义配置

    Args:
        config_name: 配置名称 ('default', 'testing', 'env')
    """
    if config_name == 'env':
        return ServiceConfig.from_env()
    configs = {
        'default': DEFAULT_CONFIG,
        'testing': TESTING_CONFIG,
    }
    return configs.get(config_name, DEFAULT_CONFIG)
