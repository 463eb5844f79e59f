from klog.configs.settings import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    RedisConfig,
    Settings,
    file_logger,
    pool_kwargs,
    settings,
)

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "RedisConfig",
    "Settings",
    "file_logger",
    "pool_kwargs",
    "settings",
]
