import asyncio
import logging

from conftest import make_entry, make_links

from danmu_merge.core.config import MergeGroup, MergeOptions, compile_episode_filter
from danmu_merge.db import EpisodeLink
from danmu_merge.services.merge_service import MergeService, apply_merge_logic, fuse_episode_links
from danmu_merge.services.episode_aligner import filter_episodes
from danmu_merge.services.merged_id import generate_safe_merged_id

FRIEREN = "葬送的芙莉莲(2023)【动漫】from {source}"
BILI_URL = "https://www.bilibili.com/bangumi/play/ep{i}"


def _frieren(anime_id, source, count=12, url_fmt="{i}"):
    return make_entry(anime_id, FRIEREN.format(source=source), source,
                      links=make_links(source, count, url_fmt=url_fmt), start_date="2023-09-29")


def _run(store, cur_animes, options):
    async def main():
        await store.add_entries(cur_animes)
        await MergeService(store, options).apply_merge_logic(cur_animes)
    asyncio.run(main())


def _options(*chains, **kwargs):
    groups = [MergeGroup(primary=c[0], secondaries=tuple(c[1:])) for c in chains]
    return MergeOptions(groups=groups, **kwargs)


def test_merges_two_sources_into_one_entry(store):
    cur = [_frieren(101, "dandan", url_fmt="1000{i}"), _frieren(202, "bilibili", url_fmt=BILI_URL)]

    _run(store, cur, _options(["dandan", "bilibili"]))

    assert len(cur) == 1
    merged = cur[0]
    assert merged.anime_id == generate_safe_merged_id(101, 202, "dandan&bilibili")
    assert merged.bangumi_id == str(merged.anime_id)
    assert merged.source == "dandan"
    assert merged.anime_title == "葬送的芙莉莲(2023)【动漫】from dandan&bilibili"
    assert len(merged.links) == 12
    for i, link in enumerate(merged.links, start=1):
        assert link.url == f"dandan:1000{i}$$$bilibili:{BILI_URL.format(i=i)}"
        assert link.title == f"【dandan&bilibili】第{i}集"


def test_merged_entry_is_stored_and_cache_untouched(store):
    cur = [_frieren(101, "dandan"), _frieren(202, "bilibili")]

    _run(store, cur, _options(["dandan", "bilibili"]))

    async def lookup():
        return (
            await store.find_cached_entry(cur[0].anime_id),
            await store.find_cached_entry(101),
        )
    stored, original = asyncio.run(lookup())
    assert stored is not None
    assert stored.links[0].url == cur[0].links[0].url
    assert original.links[0].url == "1"
    assert original.anime_title == FRIEREN.format(source="dandan")


def test_unrelated_entries_are_left_alone(store):
    a = _frieren(101, "dandan")
    b = make_entry(202, "间谍过家家(2022)【动漫】from bilibili", "bilibili",
                   links=make_links("bilibili", 12), start_date="2022-04-09")
    cur = [a, b]

    _run(store, cur, _options(["dandan", "bilibili"]))

    assert [e.anime_id for e in cur] == [101, 202]


def test_no_groups_is_a_noop(store):
    cur = [_frieren(101, "dandan"), _frieren(202, "bilibili")]
    _run(store, cur, MergeOptions())
    assert [e.anime_id for e in cur] == [101, 202]


def test_three_source_chain(store):
    cur = [
        _frieren(101, "dandan", url_fmt="d{i}"),
        _frieren(202, "bilibili", url_fmt="b{i}"),
        _frieren(303, "iqiyi", url_fmt="q{i}"),
    ]
    fingerprint = "dandan&bilibili&iqiyi"

    _run(store, cur, _options(["dandan", "bilibili", "iqiyi"]))

    assert len(cur) == 1
    merged = cur[0]
    first = generate_safe_merged_id(101, 202, fingerprint)
    assert merged.anime_id == generate_safe_merged_id(first, 303, fingerprint)
    assert merged.anime_title.endswith("from dandan&bilibili&iqiyi")
    assert merged.links[0].url == "dandan:d1$$$bilibili:b1$$$iqiyi:q1"
    assert merged.links[0].title == "【dandan&bilibili&iqiyi】第1集"


def test_rotation_when_primary_source_has_no_results(store, caplog):
    caplog.set_level(logging.INFO)
    cur = [_frieren(101, "dandan"), _frieren(202, "bilibili")]

    _run(store, cur, _options(["iqiyi", "dandan", "bilibili"]))

    assert len(cur) == 1
    assert cur[0].anime_id == generate_safe_merged_id(101, 202, "iqiyi&dandan&bilibili")
    assert cur[0].source == "dandan"
    assert "轮替" in caplog.text


def test_duplicate_signature_across_groups_is_suppressed(store, caplog):
    caplog.set_level(logging.INFO)
    cur = [_frieren(101, "dandan"), _frieren(202, "bilibili")]

    _run(store, cur, _options(["dandan", "bilibili"], ["dandan", "bilibili", "youku"]))

    assert len(cur) == 1
    assert cur[0].anime_id == generate_safe_merged_id(101, 202, "dandan&bilibili")
    assert "重复的合并结果" in caplog.text


def test_previous_merge_results_are_dropped(store):
    stale = make_entry(1_234_567_890, "葬送的芙莉莲 from dandan&bilibili", "dandan",
                       links=make_links("dandan", 12), is_merged=True)
    cur = [_frieren(101, "dandan"), _frieren(202, "bilibili"), stale]

    _run(store, cur, _options(["dandan", "bilibili"]))

    assert len(cur) == 1
    assert cur[0].anime_id == generate_safe_merged_id(101, 202, "dandan&bilibili")


def test_low_coverage_merge_is_rejected(store, caplog):
    caplog.set_level(logging.INFO)
    cur = [_frieren(101, "dandan", count=12), _frieren(202, "bilibili", count=2)]

    _run(store, cur, _options(["dandan", "bilibili"]))

    assert [e.anime_id for e in cur] == [101, 202]
    assert "匹配率过低" in caplog.text
    assert cur[0].links[0].url == "1"


def test_ratio_exempt_source_accepts_low_coverage(store):
    cur = [_frieren(101, "dandan", count=12), _frieren(202, "bilibili", count=2)]

    _run(store, cur, _options(["dandan", "bilibili"], ratio_exempt_sources=frozenset({"bilibili"})))

    assert len(cur) == 1
    merged = cur[0]
    assert "$$$bilibili:" in merged.links[1].url
    assert "$$$" not in merged.links[2].url


def test_primary_without_links_is_skipped(store, caplog):
    primary = _frieren(101, "dandan")
    secondary = _frieren(202, "bilibili")

    async def main():
        bare = primary.clone()
        bare.links = None
        await store.add_entry(bare)
        await store.add_entry(secondary)
        cur = [primary, secondary]
        await MergeService(store, _options(["dandan", "bilibili"])).apply_merge_logic(cur)
        return cur

    cur = asyncio.run(main())

    assert [e.anime_id for e in cur] == [101, 202]
    assert "主源数据不完整" in caplog.text


def test_filtered_episodes_keep_original_positions(store):
    primary = _frieren(101, "dandan", url_fmt="d{i}")
    primary.links.insert(0, EpisodeLink(name="0", url="trailer", title="【dandan】先导预告"))
    cur = [primary, _frieren(202, "bilibili", url_fmt="b{i}")]

    _run(store, cur, _options(["dandan", "bilibili"], episode_filter=compile_episode_filter("", True)))

    merged = cur[0]
    assert merged.links[0].url == "trailer"
    assert merged.links[1].url == "dandan:d1$$$bilibili:b1"
    assert merged.links[12].url == "dandan:d12$$$bilibili:b12"


def test_error_in_one_primary_does_not_abort_run(store, caplog):
    class FlakyStore(type(store)):
        async def find_cached_entry(self, anime_id):
            if str(anime_id) == "100":
                raise RuntimeError("boom")
            return await super().find_cached_entry(anime_id)

    flaky = FlakyStore()
    broken = make_entry(100, "进击的巨人(2013)【动漫】from dandan", "dandan",
                        links=make_links("dandan", 25), start_date="2013-04-07")
    cur = [broken, _frieren(101, "dandan"), _frieren(202, "bilibili")]

    _run(flaky, cur, _options(["dandan", "bilibili"]))

    assert [e.anime_id for e in cur] == [generate_safe_merged_id(101, 202, "dandan&bilibili"), 100]
    assert "发生错误" in caplog.text


def test_module_level_entry_point(store):
    cur = [_frieren(101, "dandan"), _frieren(202, "bilibili")]

    async def main():
        await store.add_entries(cur)
        await apply_merge_logic(cur, store, _options(["dandan", "bilibili"]))
    asyncio.run(main())

    assert len(cur) == 1


def test_fuse_skips_special_type_mismatch():
    primary_links = [
        EpisodeLink(name="1", url="p1", title="【dandan】第1集"),
        EpisodeLink(name="op", url="p2", title="【dandan】Opening"),
    ]
    secondary_links = [
        EpisodeLink(name="1", url="s1", title="【bilibili】第1集"),
        EpisodeLink(name="2", url="s2", title="【bilibili】第2集"),
        EpisodeLink(name="3", url="s3", title="【bilibili】第3集"),
    ]

    fusion = fuse_episode_links(
        primary_links, filter_episodes(primary_links, None), filter_episodes(secondary_links, None),
        0, "dandan", "bilibili",
    )

    assert fusion.merged_count == 1
    assert fusion.links[0].url == "dandan:p1$$$bilibili:s1"
    assert fusion.links[1].url == "p2"
    # 原始 links 不被修改
    assert primary_links[0].url == "p1"
    text = fusion.mapping_text()
    assert "[略过]" in text
    assert "(主源越界)" in text
    assert "(副源缺失或被略过)" in text


def test_is_merge_ratio_valid(store):
    service = MergeService(store, _options(["dandan", "bilibili"]))

    assert service.is_merge_ratio_valid(0, 0, 0, "dandan", "bilibili") is False
    assert service.is_merge_ratio_valid(2, 12, 2, "dandan", "bilibili") is False
    assert service.is_merge_ratio_valid(3, 12, 3, "dandan", "bilibili") is True
    assert service.is_merge_ratio_valid(1, 5, 1, "dandan", "bilibili") is True
    assert service.is_merge_ratio_valid(1, 12, 1, "animeko", "bilibili") is True


def test_running_twice_keeps_a_single_merged_entry(store):
    cur = [_frieren(101, "dandan"), _frieren(202, "bilibili")]
    service = MergeService(store, _options(["dandan", "bilibili"]))

    async def main():
        await store.add_entries(cur)
        await service.apply_merge_logic(cur)
        await service.apply_merge_logic(cur)
    asyncio.run(main())

    expected = generate_safe_merged_id(101, 202, "dandan&bilibili")
    assert [e.anime_id for e in cur] == [expected]
    assert cur[0].anime_title == "葬送的芙莉莲(2023)【动漫】from dandan&bilibili"


def test_rerun_with_previous_result_reproduces_same_entry(store):
    cur = [_frieren(101, "dandan"), _frieren(202, "bilibili")]
    options = _options(["dandan", "bilibili"])
    _run(store, cur, options)
    previous = cur[0].clone()
    previous.is_merged = True

    rerun = [_frieren(101, "dandan"), _frieren(202, "bilibili"), previous]
    _run(store, rerun, options)

    ids = [e.anime_id for e in rerun]
    assert ids == [generate_safe_merged_id(101, 202, "dandan&bilibili")]
    assert len(set(ids)) == len(ids)
