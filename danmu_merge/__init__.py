"""
danmu_merge - 多源番剧条目合并引擎

将不同搜索源返回的同一部作品识别出来，对齐分集，
并生成分集链接中携带所有来源 ID 的合并条目。

使用方式:
    from danmu_merge.services import MergeService, apply_merge_logic
    from danmu_merge.core import resolve_merge_options
    from danmu_merge.db import AnimeEntry, EpisodeLink, AnimeStore
"""

__version__ = "0.1.0"
