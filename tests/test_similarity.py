import pytest

from danmu_merge.utils.similarity import (
    calculate_dice_similarity,
    calculate_similarity,
    edit_distance,
)


def test_edit_distance_unit_costs():
    assert edit_distance("kitten", "sitting") == 3
    assert edit_distance("", "abc") == 3
    assert edit_distance("同一", "同一") == 0


def test_dice_similarity():
    assert calculate_dice_similarity("abc", "abd") == pytest.approx(2 * 2 / 6)
    assert calculate_dice_similarity("a b", "ab") == 1.0
    assert calculate_dice_similarity("", "") == 1.0
    assert calculate_dice_similarity("abc", "") == 0.0


def test_similarity_identical_after_cleaning():
    assert calculate_similarity("進擊的巨人", "进击的巨人") == 1.0
    assert calculate_similarity("【dandan】某番 Season 2", "某番 第二季") == 1.0


def test_similarity_containment():
    score = calculate_similarity("进击的巨人", "进击的巨人 最终季")
    assert score == pytest.approx(0.8 + 0.2 * 5 / 9)


def test_similarity_is_order_insensitive_for_reordered_characters():
    assert calculate_similarity("我怎么可能", "可能我怎么") == 1.0


def test_similarity_empty_input():
    assert calculate_similarity("", "某番") == 0.0
    assert calculate_similarity(None, None) == 0.0


@pytest.mark.parametrize("a,b", [
    ("进击的巨人", "间谍过家家"),
    ("葬送的芙莉莲", "葬送的芙莉蓮 第二季"),
    ("Fate/Zero", "Fate/stay night"),
])
def test_similarity_symmetric_and_bounded(a, b):
    score = calculate_similarity(a, b)
    assert score == calculate_similarity(b, a)
    assert 0.0 <= score <= 1.0
