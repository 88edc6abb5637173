import pytest

from danmu_merge.core.cache import MemoryBackend
from danmu_merge.db import AnimeEntry, AnimeStore, EpisodeLink


def make_links(source, count, url_fmt="{i}", start=1, label=None):
    """生成 【label】第N集 形式的分集列表"""
    label = label or source
    return [
        EpisodeLink(name=str(i), url=url_fmt.format(i=i), title=f"【{label}】第{i}集")
        for i in range(start, start + count)
    ]


def make_entry(anime_id, title, source, links=None, start_date=None, **kwargs):
    return AnimeEntry(
        anime_id=anime_id,
        bangumi_id=str(anime_id),
        anime_title=title,
        source=source,
        links=links,
        start_date=start_date,
        **kwargs,
    )


@pytest.fixture
def store():
    return AnimeStore(backend=MemoryBackend())
