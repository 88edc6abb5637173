"""
缓存抽象层

定义异步缓存后端接口与进程内存实现。番剧条目存储 (db.anime_store)
以 region 隔离的方式建立在这里的后端之上。

配置方式（config.yml）:
    cache:
      memory_maxsize: 1024
      memory_default_ttl: 0

环境变量覆盖:
    DANMU_CACHE__MEMORY_MAXSIZE=2048
"""

import time
import logging
import asyncio
from abc import ABC, abstractmethod
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


# ==================== 抽象基类 ====================

class AsyncCacheBackend(ABC):
    """异步缓存后端抽象基类"""

    @abstractmethod
    async def get(self, key: str, region: str = "default") -> Optional[Any]:
        """获取缓存值，不存在或已过期返回 None"""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int = 0, region: str = "default") -> None:
        """设置缓存值，ttl=0 表示不过期"""

    @abstractmethod
    async def values(self, region: str = "default") -> List[Any]:
        """按写入顺序列出某个区域内所有未过期的值"""

    @abstractmethod
    async def clear(self, region: Optional[str] = None) -> int:
        """清除缓存，指定 region 则只清该区域，否则全清。返回清除数量"""

    def _make_key(self, region: str, key: str) -> str:
        """生成带 region 前缀的完整 key"""
        return f"{region}:{key}"


# ==================== Memory 后端 ====================

class MemoryBackend(AsyncCacheBackend):
    """
    基于进程内存的缓存后端
    使用 dict + 过期时间戳实现；超出容量时先淘汰过期条目，再按写入顺序淘汰最早的条目
    """

    def __init__(self, maxsize: int = 1024, default_ttl: int = 0):
        self._store: dict[str, tuple[Any, float]] = {}  # key -> (value, expire_timestamp)
        self._maxsize = maxsize
        self._default_ttl = default_ttl
        self._lock = asyncio.Lock()

    def _alive(self, full_key: str) -> bool:
        entry = self._store.get(full_key)
        if entry is None:
            return False
        _, expire_at = entry
        if expire_at > 0 and time.time() > expire_at:
            del self._store[full_key]
            return False
        return True

    async def get(self, key: str, region: str = "default") -> Optional[Any]:
        full_key = self._make_key(region, key)
        if not self._alive(full_key):
            return None
        return self._store[full_key][0]

    async def set(self, key: str, value: Any, ttl: int = 0, region: str = "default") -> None:
        full_key = self._make_key(region, key)
        ttl = ttl or self._default_ttl
        expire_at = (time.time() + ttl) if ttl > 0 else 0
        async with self._lock:
            if full_key in self._store:
                # 重新写入的条目移到末尾，保持"最近写入在后"的顺序
                del self._store[full_key]
            elif len(self._store) >= self._maxsize:
                self._evict()
            self._store[full_key] = (value, expire_at)

    async def values(self, region: str = "default") -> List[Any]:
        prefix = f"{region}:"
        return [self._store[k][0] for k in list(self._store) if k.startswith(prefix) and self._alive(k)]

    async def clear(self, region: Optional[str] = None) -> int:
        if region is None:
            count = len(self._store)
            self._store.clear()
            return count
        prefix = f"{region}:"
        keys_to_delete = [k for k in self._store if k.startswith(prefix)]
        for k in keys_to_delete:
            del self._store[k]
        return len(keys_to_delete)

    def _evict(self):
        now = time.time()
        expired = [k for k, (_, exp) in self._store.items() if 0 < exp <= now]
        if expired:
            for k in expired:
                del self._store[k]
            return
        if self._store:
            oldest_key = next(iter(self._store))
            logger.debug(f"内存缓存已满 (maxsize={self._maxsize})，淘汰最早条目: {oldest_key}")
            del self._store[oldest_key]


def create_memory_backend(cache_config=None) -> MemoryBackend:
    """根据 CacheConfig 创建内存后端"""
    from danmu_merge.core.config import CacheConfig
    if cache_config is None:
        cache_config = CacheConfig()
    backend = MemoryBackend(
        maxsize=cache_config.memory_maxsize,
        default_ttl=cache_config.memory_default_ttl,
    )
    logger.info(f"缓存后端: Memory (maxsize={cache_config.memory_maxsize})")
    return backend
