from conftest import make_entry, make_links

from danmu_merge.services.match_finder import find_secondary_match, strip_sim_title


def test_strip_sim_title():
    assert strip_sim_title("【电影】名侦探柯南(2023)【动漫】from dandan") == "名侦探柯南"
    assert strip_sim_title(None) == ""


def test_finds_same_title_from_other_source():
    primary = make_entry(1, "葬送的芙莉莲(2023)【动漫】from dandan", "dandan",
                         links=make_links("dandan", 28), start_date="2023-09-29")
    other = make_entry(2, "间谍过家家(2023)【动漫】from bilibili", "bilibili", start_date="2023-10-07")
    same = make_entry(3, "葬送的芙莉莲(2023)【动漫】from bilibili", "bilibili", start_date="2023-09-29")

    assert find_secondary_match(primary, [other, same]) is same


def test_no_candidates_or_unrelated_titles():
    primary = make_entry(1, "进击的巨人", "dandan")
    assert find_secondary_match(primary, []) is None
    assert find_secondary_match(primary, [make_entry(2, "间谍过家家", "bilibili")]) is None


def test_first_candidate_wins_ties():
    primary = make_entry(1, "某番", "dandan")
    first = make_entry(2, "某番", "bilibili")
    second = make_entry(3, "某番", "bilibili")
    assert find_secondary_match(primary, [first, second]) is first


def test_year_gap_rejects_unless_same_season_marker():
    primary = make_entry(1, "某番", "dandan", start_date="2023-04-01")
    old = make_entry(2, "某番", "bilibili", start_date="2018-04-01")
    assert find_secondary_match(primary, [old]) is None

    primary_s2 = make_entry(3, "某番 第2季", "dandan", start_date="2023-04-01")
    old_s2 = make_entry(4, "某番 第二季", "bilibili", start_date="2018-04-01")
    assert find_secondary_match(primary_s2, [old_s2]) is old_s2


def test_season_conflict_rejects_candidate():
    primary = make_entry(1, "进击的巨人", "dandan")
    sequel = make_entry(2, "进击的巨人 第二季", "bilibili")
    assert find_secondary_match(primary, [sequel]) is None


def test_media_type_conflict_rejects_candidate():
    primary = make_entry(1, "【电影】某番", "dandan", links=make_links("dandan", 1))
    series = make_entry(2, "【电视剧】某番", "bilibili", links=make_links("bilibili", 24))
    assert find_secondary_match(primary, [series]) is None


def test_subtitle_structure_is_penalized():
    primary = make_entry(1, "某科学的超电磁炮", "dandan")
    spinoff = make_entry(2, "某科学的超电磁炮 外传篇章", "bilibili")
    exact = make_entry(3, "某科学的超电磁炮", "bilibili")

    assert find_secondary_match(primary, [spinoff, exact]) is exact
    # 惩罚后仍超过阈值，单独出现时依然可以匹配
    assert find_secondary_match(primary, [spinoff]) is spinoff
