"""
分集对齐

在过滤掉预告/花絮等非正片后，通过滑动窗口为主源与副源的分集列表
寻找最佳偏移量：secondary[i] 对应 primary[i + offset]。
"""

import re
import logging
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Sequence

from danmu_merge.db.models import EpisodeLink
from danmu_merge.utils.text_normalizer import clean_text
from danmu_merge.utils.similarity import calculate_similarity

logger = logging.getLogger(__name__)

# 滑动范围上限（假设两个源的集数差异不超过 ±15 集）
MAX_SHIFT = 15
# 最佳得分不超过该值时不采用偏移
MIN_ALIGNMENT_SCORE = 0.3

MOVIE_RE = re.compile(r'剧场版|movie|film', re.IGNORECASE)
SPECIAL_RE = re.compile(r'^(?:s|o|sp|special)\d', re.IGNORECASE)
STRONG_NUM_RE = re.compile(r'(?:ep|o|s|part|第)\s*(\d+(?:\.\d+)?)', re.IGNORECASE)
WEAK_NUM_RE = re.compile(r'(?:^|\s)(\d+(?:\.\d+)?)(?:话|集|\s|$)')

# 特殊集类型：(关键词, 是否忽略大小写, 类型标识)
SPECIAL_EPISODE_RULES = [
    ('opening', True, 'opening'),
    ('ending', True, 'ending'),
    ('interview', True, 'interview'),
    ('Bloopers', False, 'bloopers'),
]


@dataclass
class EpisodeInfo:
    is_movie: bool
    num: Optional[float]
    is_special: bool


@dataclass
class FilteredEpisode:
    """过滤后保留的分集及其在原始 links 中的位置"""
    link: EpisodeLink
    original_index: int


def extract_episode_info(title: Optional[str]) -> EpisodeInfo:
    """
    提取集数信息，同时判断是否为剧场版以及特殊集 (S1/O1/SP/Special)。

    数字提取优先使用强前缀 (EP/O/S/Part/第)，
    否则匹配行首或空格后、以 话/集/空格/行尾 结束的独立数字。
    """
    t = clean_text(title or '')

    is_movie = bool(MOVIE_RE.search(t))
    is_special = bool(SPECIAL_RE.search(t))

    num = None
    m = STRONG_NUM_RE.search(t) or WEAK_NUM_RE.search(t)
    if m:
        num = float(m.group(1))

    return EpisodeInfo(is_movie=is_movie, num=num, is_special=is_special)


def get_special_episode_type(title: Optional[str]) -> Optional[str]:
    """判断集标题是否属于 Opening/Ending/Interview/Bloopers 特殊类型"""
    if not title:
        return None
    lowered = title.lower()
    for keyword, ignore_case, kind in SPECIAL_EPISODE_RULES:
        if keyword in (lowered if ignore_case else title):
            return kind
    return None


def filter_episodes(links: Optional[Sequence[EpisodeLink]], pattern: Optional[re.Pattern]) -> List[FilteredEpisode]:
    """过滤预告/花絮等无效剧集，保留原始索引；pattern 为 None 时不过滤"""
    if not links:
        return []
    indexed = [FilteredEpisode(link=link, original_index=i) for i, link in enumerate(links)]
    if pattern is None:
        return indexed
    return [item for item in indexed if not pattern.search(item.link.display_title)]


def _min_normal_num(episodes: Sequence[FilteredEpisode]) -> Optional[float]:
    nums = [
        info.num for info in (extract_episode_info(e.link.title) for e in episodes)
        if info.num is not None and not info.is_special
    ]
    return min(nums) if nums else None


def find_best_alignment_offset(
    primary: Sequence[FilteredEpisode],
    secondary: Sequence[FilteredEpisode],
) -> int:
    """
    寻找最佳对齐偏移量。

    每个偏移量下对重叠的分集对打分：剧场版与正片错配、特殊集类型错配给予重罚，
    同类型、相对首集偏移一致、集数完全相等给予奖励，再加上标题相似度；
    平均后叠加数字一致性奖励、覆盖率权重以及集数完全相等的累积奖励。
    得分相同时取更小的偏移；最佳得分不超过 0.3 时返回 0。
    """
    if not primary or not secondary:
        return 0

    primary_infos = [extract_episode_info(e.link.title) for e in primary]
    secondary_infos = [extract_episode_info(e.link.title) for e in secondary]
    primary_titles = [e.link.title or '' for e in primary]
    secondary_titles = [e.link.title or '' for e in secondary]

    # 正片起始集数的差值，用于处理不同源的集数命名习惯（如第二季从 13 开始编号）
    min_a = _min_normal_num(primary)
    min_b = _min_normal_num(secondary)
    season_shift = (min_a - min_b) if min_a is not None and min_b is not None else None

    max_shift = min(max(len(primary), len(secondary)), MAX_SHIFT)

    best_offset = 0
    max_score = -999.0

    for offset in range(-max_shift, max_shift + 1):
        total_score = 0.0
        raw_text_score = 0.0
        match_count = 0
        numeric_diffs: Counter = Counter()

        for i in range(len(secondary)):
            p_index = i + offset
            if p_index < 0 or p_index >= len(primary):
                continue

            title_a = primary_titles[p_index]
            title_b = secondary_titles[i]
            info_a = primary_infos[p_index]
            info_b = secondary_infos[i]

            pair_score = 0.0
            # 阻止剧场版与正片匹配
            if info_a.is_movie != info_b.is_movie:
                pair_score -= 5.0

            special_a = get_special_episode_type(title_a)
            special_b = get_special_episode_type(title_b)
            if special_a or special_b:
                pair_score += 3.0 if special_a == special_b else -10.0

            if info_a.is_special == info_b.is_special:
                pair_score += 3.0

            both_numbered = info_a.num is not None and info_b.num is not None
            if (
                season_shift is not None
                and both_numbered
                and not info_a.is_special
                and not info_b.is_special
                and info_a.num - info_b.num == season_shift
            ):
                pair_score += 5.0

            sim = calculate_similarity(title_a, title_b)
            pair_score += sim
            raw_text_score += sim

            if both_numbered and info_a.num == info_b.num:
                pair_score += 2.0

            total_score += pair_score

            if both_numbered:
                numeric_diffs[f"{info_b.num - info_a.num:.4f}"] += 1

            match_count += 1

        if match_count == 0:
            continue

        final_score = total_score / match_count

        # 集数差值一致且文本相似度达标时给予一致性奖励
        max_frequency = max(numeric_diffs.values(), default=0)
        if max_frequency / match_count > 0.6 and raw_text_score / match_count > 0.33:
            final_score += 2.0

        # 覆盖率权重
        final_score += min(match_count * 0.15, 1.5)

        final_score += numeric_diffs.get("0.0000", 0) * 2.0

        if final_score > max_score:
            max_score = final_score
            best_offset = offset

    return best_offset if max_score > MIN_ALIGNMENT_SCORE else 0
