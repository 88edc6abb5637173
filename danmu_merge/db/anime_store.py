"""
番剧条目存储

合并引擎只通过两个操作与存储交互：按 ID 查找已缓存条目、写入新条目。
AnimeRepository 描述这一协议，AnimeStore 是基于内存缓存后端的默认实现。
"""

import logging
from typing import Any, Iterable, List, Optional, Protocol, Union

from danmu_merge.core.cache import AsyncCacheBackend, create_memory_backend
from .models import AnimeEntry

ANIME_REGION = "animes"


class AnimeRepository(Protocol):
    async def find_cached_entry(self, anime_id: Union[int, str]) -> Optional[AnimeEntry]:
        """返回 links 已完整加载的条目，不存在返回 None"""
        ...

    async def add_entry(self, entry: AnimeEntry) -> None:
        ...


class AnimeStore:
    """
    基于 AsyncCacheBackend 的番剧条目存储

    使用示例:
        store = AnimeStore()
        await store.add_entries(search_results)
        entry = await store.find_cached_entry(12345)
    """

    def __init__(self, backend: Optional[AsyncCacheBackend] = None, cache_config: Any = None):
        self._backend = backend or create_memory_backend(cache_config)
        self.logger = logging.getLogger(self.__class__.__name__)

    async def find_cached_entry(self, anime_id: Union[int, str]) -> Optional[AnimeEntry]:
        return await self._backend.get(str(anime_id), region=ANIME_REGION)

    async def add_entry(self, entry: AnimeEntry) -> None:
        """写入条目副本；同 ID 的旧条目会被覆盖"""
        await self._backend.set(entry.key, entry.clone(), region=ANIME_REGION)
        self.logger.debug(f"缓存番剧条目: [{entry.source}] {entry.anime_title} (ID: {entry.anime_id})")

    async def add_entries(self, entries: Iterable[AnimeEntry]) -> int:
        count = 0
        for entry in entries:
            await self.add_entry(entry)
            count += 1
        return count

    async def all_entries(self) -> List[AnimeEntry]:
        return await self._backend.values(region=ANIME_REGION)

    async def clear(self) -> int:
        return await self._backend.clear(region=ANIME_REGION)
