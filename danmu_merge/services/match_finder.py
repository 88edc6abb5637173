import re
import logging
from typing import Optional, Sequence

from danmu_merge.db.models import AnimeEntry
from danmu_merge.utils.text_normalizer import parse_date, remove_parentheses
from danmu_merge.utils.similarity import calculate_similarity
from .conflict_detector import (
    DATE_HARD_REJECT,
    check_date_match,
    check_media_type_mismatch,
    check_season_mismatch,
    check_title_subtitle_conflict,
    has_same_season_marker,
)

logger = logging.getLogger(__name__)

# 最终得分不低于该值才视为同一作品
MATCH_THRESHOLD = 0.6
# 一方有副标题一方没有时的扣分
SUBTITLE_CONFLICT_PENALTY = 0.15

_SIM_YEAR_TAIL_RE = re.compile(r'\(\d{4}\).*$')
_SIM_MEDIA_TAG_RE = re.compile(r'【(?:电影|电视剧)】')


def strip_sim_title(raw_title: Optional[str]) -> str:
    """
    计算标题：剔除年份及其后内容和【电影】/【电视剧】标签，专供相似度计算使用。
    原始标题保留全部信息，只用于媒体类型与主副标题冲突检测。
    """
    title = _SIM_YEAR_TAIL_RE.sub('', raw_title or '')
    return _SIM_MEDIA_TAG_RE.sub('', title).strip()


def find_secondary_match(primary: AnimeEntry, candidates: Sequence[AnimeEntry]) -> Optional[AnimeEntry]:
    """
    在副源候选中寻找与主源条目最匹配的条目。

    采用双重对比：同时计算完整标题和去括号主标题的相似度并取最大值，
    再结合媒体类型、季度、主副标题结构与日期进行冲突检测。
    得分相同时先出现的候选胜出；最高分低于 MATCH_THRESHOLD 时返回 None。
    """
    if not candidates:
        return None

    raw_primary_title = primary.anime_title or ''
    primary_sim_title = strip_sim_title(raw_primary_title)
    primary_date = parse_date(primary.start_date)
    primary_count = primary.best_episode_count

    best_match: Optional[AnimeEntry] = None
    max_score = 0.0

    for candidate in candidates:
        raw_sec_title = candidate.anime_title or ''
        sec_sim_title = strip_sim_title(raw_sec_title)

        # 一个是电影一个是电视剧，且没有集数证明它们一样，直接跳过
        if check_media_type_mismatch(
            raw_primary_title, raw_sec_title,
            primary.type_description, candidate.type_description,
            primary_count, candidate.best_episode_count,
        ):
            logger.debug(f"媒体类型冲突，跳过候选: '{raw_primary_title}' vs '{raw_sec_title}'")
            continue

        has_structure_conflict = check_title_subtitle_conflict(raw_primary_title, raw_sec_title)

        # 季数标记完全一致时豁免年份硬性不匹配
        is_season_exact_match = has_same_season_marker(
            primary_sim_title, sec_sim_title, primary.type_description, candidate.type_description
        )

        date_score = check_date_match(primary_date, parse_date(candidate.start_date))
        if not is_season_exact_match and date_score == DATE_HARD_REJECT:
            logger.debug(f"年份相差过大，跳过候选: '{raw_primary_title}' vs '{raw_sec_title}'")
            continue

        if check_season_mismatch(
            primary_sim_title, sec_sim_title, primary.type_description, candidate.type_description
        ):
            logger.debug(f"季度标记冲突，跳过候选: '{raw_primary_title}' vs '{raw_sec_title}'")
            continue

        score_full = calculate_similarity(primary_sim_title, sec_sim_title)
        score_base = calculate_similarity(
            remove_parentheses(primary_sim_title), remove_parentheses(sec_sim_title)
        )
        score = max(score_full, score_base)

        if has_structure_conflict:
            score -= SUBTITLE_CONFLICT_PENALTY
        if date_score != DATE_HARD_REJECT:
            score += date_score

        if score > max_score:
            max_score = score
            best_match = candidate

    if best_match is not None and max_score >= MATCH_THRESHOLD:
        logger.debug(f"匹配成功: '{raw_primary_title}' -> '{best_match.anime_title}' (得分: {max_score:.2f})")
        return best_match
    return None
