"""
核心模块 - 静态配置与缓存抽象

使用方式:
    from danmu_merge.core import settings, resolve_merge_options
    from danmu_merge.core.cache import MemoryBackend
"""

# 配置相关
from .config import (
    settings,
    Settings,
    MergeConfig,
    LogConfig,
    CacheConfig,
    MergeGroup,
    MergeOptions,
    ConfigDiagnostics,
    parse_merge_groups,
    compile_episode_filter,
    resolve_merge_options,
)

# 缓存抽象层
from .cache import (
    AsyncCacheBackend,
    MemoryBackend,
    create_memory_backend,
)

__all__ = [
    # 配置
    'settings',
    'Settings',
    'MergeConfig',
    'LogConfig',
    'CacheConfig',
    'MergeGroup',
    'MergeOptions',
    'ConfigDiagnostics',
    'parse_merge_groups',
    'compile_episode_filter',
    'resolve_merge_options',
    # 缓存
    'AsyncCacheBackend',
    'MemoryBackend',
    'create_memory_backend',
]
