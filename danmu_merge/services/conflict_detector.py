"""
合并冲突检测

判断两个候选条目之间是否存在媒体类型、季度、主副标题结构等冲突，
以及日期的匹配得分。所有规则都是纯函数。
"""

import re
import logging
from typing import Optional, Set, Tuple

from danmu_merge.utils.text_normalizer import (
    clean_text,
    light_clean_title,
    simplify,
    SOURCE_SUFFIX_RE,
    SOURCE_TAG_RE,
    YEAR_TAIL_RE,
)

logger = logging.getLogger(__name__)

# 日期硬性不匹配的哨兵值
DATE_HARD_REJECT = -1

# 双方都有集数时允许的最大集数差
MEDIA_TYPE_COUNT_TOLERANCE = 5


# ============================================================================
# 规则表：按顺序求值，每条规则取第一个匹配
# ============================================================================

# (正则, 前缀, 固定值)：有前缀时取第一个捕获组的数字生成 "前缀+数字"，否则直接添加固定值
SEASON_MARKER_RULES = [
    (re.compile(r'(?:第)?(\d+)[季期部]'), 'S', None),
    (re.compile(r'season\s*(\d+)'), 'S', None),
    (re.compile(r's(\d+)'), 'S', None),
    (re.compile(r'part\s*(\d+)'), 'P', None),
    (re.compile(r'(ova|oad)'), None, 'OVA'),
    (re.compile(r'(剧场版|movie|film|电影)'), None, 'MOVIE'),
    (re.compile(r'(续篇|续集)'), None, 'SEQUEL'),
    (re.compile(r'sp'), None, 'SP'),
    # 末尾单个数字，如 "刀剑神域2"
    (re.compile(r'[^0-9](\d)$'), 'S', None),
]

# 类型描述补充标记：任一关键词出现即添加
TYPE_MARKER_RULES = [
    (('剧场版', 'movie', 'film', '电影'), 'MOVIE'),
    (('ova', 'oad'), 'OVA'),
    (('sp', 'special'), 'SP'),
]

CHINESE_SEASON_MARKERS = [
    ('一', 1), ('二', 2), ('三', 3), ('四', 4), ('五', 5), ('final', 99),
]

SUBTITLE_SEPARATOR_RE = re.compile(r'^[\s:：\-–—(（\[【]')
# 主标题 + 分隔符(空格/NBSP/全角空格) + 副标题
SPACED_STRUCTURE_RE = re.compile(r'.+[\s 　].+')
ANNOTATION_RE = re.compile(r'[(（](?:续篇|TV版|无修|未删减|完整版)[)）]', re.IGNORECASE)


# ============================================================================
# 媒体类型
# ============================================================================

def get_strict_media_type(title: Optional[str], type_desc: Optional[str]) -> Optional[str]:
    """
    获取严格的媒体类型标识：仅匹配 "电影" 和 "电视剧"，不包含 "剧场版" 等宽泛词。
    两者都出现或都不出现时返回 None。
    """
    full_text = f"{title or ''} {type_desc or ''}".lower()
    has_movie = '电影' in full_text
    has_tv = '电视剧' in full_text

    if has_movie and not has_tv:
        return 'MOVIE'
    if has_tv and not has_movie:
        return 'TV'
    return None


def check_theatrical_exemption(
    title_a: Optional[str],
    title_b: Optional[str],
    type_desc_a: Optional[str],
    type_desc_b: Optional[str],
) -> bool:
    """
    检查是否满足 "剧场版" 结构豁免条件：
    任一方类型描述包含 "剧场版"，且双方标题均为 "主标题 + 空格 + 副标题" 结构，视为同一单品。
    """
    if '剧场版' not in (type_desc_a or '') and '剧场版' not in (type_desc_b or ''):
        return False

    t1 = light_clean_title(title_a)
    t2 = light_clean_title(title_b)
    return bool(SPACED_STRUCTURE_RE.search(t1)) and bool(SPACED_STRUCTURE_RE.search(t2))


def check_media_type_mismatch(
    title_a: Optional[str],
    title_b: Optional[str],
    type_desc_a: Optional[str],
    type_desc_b: Optional[str],
    count_a: int,
    count_b: int,
) -> bool:
    """
    校验媒体类型是否冲突，True 表示冲突（禁止合并）。

    1. 未检测到明确互斥的类型（一个电影，一个电视剧）→ 无冲突
    2. 满足剧场版结构豁免 → 无冲突
    3. 双方都有集数 → 集数差超过 5 判定冲突
    4. 任意一方集数缺失 → 冲突，集数证据缺失不能推翻标题中的显式标签
    """
    media_a = get_strict_media_type(title_a, type_desc_a)
    media_b = get_strict_media_type(title_b, type_desc_b)

    if not media_a or not media_b or media_a == media_b:
        return False

    if check_theatrical_exemption(title_a, title_b, type_desc_a, type_desc_b):
        return False

    if count_a > 0 and count_b > 0:
        # 电影通常 1-2 集，电视剧通常 > 5 集
        return abs(count_a - count_b) > MEDIA_TYPE_COUNT_TOLERANCE

    return True


# ============================================================================
# 主副标题结构
# ============================================================================

def _subtitle_clean(title: Optional[str]) -> str:
    if not title:
        return ''
    s = simplify(title)
    # 移除常见的非标题性元数据后缀 (续篇、TV版、无修等)
    s = ANNOTATION_RE.sub('', s)
    s = YEAR_TAIL_RE.sub('', s)
    s = SOURCE_TAG_RE.sub('', s)
    s = SOURCE_SUFFIX_RE.sub('', s)
    return s.strip().lower()


def check_title_subtitle_conflict(title_a: Optional[str], title_b: Optional[str]) -> bool:
    """
    检测主副标题结构冲突：短标题是长标题的前缀，衔接处是分隔符，
    且剩余的副标题超过 2 个字符时，认为长标题是另一部作品（续作/外传）。
    True 表示存在结构冲突。
    """
    if not title_a or not title_b:
        return False

    t1 = _subtitle_clean(title_a)
    t2 = _subtitle_clean(title_b)
    if t1 == t2:
        return False

    short, long = (t1, t2) if len(t1) < len(t2) else (t2, t1)
    if not long.startswith(short) or len(long) == len(short):
        return False

    if not SUBTITLE_SEPARATOR_RE.match(long[len(short)]):
        return False

    subtitle = SUBTITLE_SEPARATOR_RE.sub('', long[len(short):], count=1).strip()
    return len(subtitle) > 2


# ============================================================================
# 季度标记
# ============================================================================

def extract_season_markers(title: Optional[str], type_desc: Optional[str] = '') -> Set[str]:
    """
    提取标题和类型中的季度/类型标识。
    支持：第N季, Season N, Part N, OVA, OAD, 剧场版, 续篇, SP 以及末尾数字；
    同时从类型描述中补全标记，解决标题未写明但类型明确的情况。
    """
    markers: Set[str] = set()
    t = clean_text(title)
    type_text = clean_text(type_desc)

    for regex, prefix, value in SEASON_MARKER_RULES:
        m = regex.search(t)
        if not m:
            continue
        if prefix:
            markers.add(f"{prefix}{int(m.group(1))}")
        else:
            markers.add(value)

    for keywords, value in TYPE_MARKER_RULES:
        if any(kw in type_text for kw in keywords):
            markers.add(value)

    for cn, num in CHINESE_SEASON_MARKERS:
        if f"第{cn}季" in t:
            markers.add(f"S{num}")

    return markers


def _s_prefixed(markers: Set[str]) -> Set[str]:
    # S1..S99 与 SP、SEQUEL 一同参与比较
    return {m for m in markers if m.startswith('S')}


def check_season_mismatch(
    title_a: Optional[str],
    title_b: Optional[str],
    type_a: Optional[str],
    type_b: Optional[str],
) -> bool:
    """
    校验季度/续作标记是否冲突，True 表示冲突。

    - 两者都无标记 → 无冲突
    - 两者都有标记 → 仅当 A 的某个 S 开头标记 (S2/SP/SEQUEL) 在 B 中不存在、且 B 也有 S 开头标记时冲突
      （只从 A 向 B 检查，方向不对称）
    - 一方有标记一方无标记 → 冲突，剧场版结构豁免除外
    """
    markers_a = extract_season_markers(title_a, type_a)
    markers_b = extract_season_markers(title_b, type_b)

    if not markers_a and not markers_b:
        return False

    if markers_a and markers_b:
        seasons_b = _s_prefixed(markers_b)
        for m in _s_prefixed(markers_a):
            if m not in markers_b and seasons_b:
                return True
        return False

    if check_theatrical_exemption(title_a, title_b, type_a, type_b):
        return False
    return True


def has_same_season_marker(
    title_a: Optional[str],
    title_b: Optional[str],
    type_a: Optional[str],
    type_b: Optional[str],
) -> bool:
    """双方是否包含相同的 S 开头标记（如都包含 S1 或 SP），用于在年份不匹配时豁免"""
    seasons_a = _s_prefixed(extract_season_markers(title_a, type_a))
    seasons_b = _s_prefixed(extract_season_markers(title_b, type_b))
    return bool(seasons_a & seasons_b)


# ============================================================================
# 日期
# ============================================================================

def check_date_match(
    date_a: Tuple[Optional[int], Optional[int]],
    date_b: Tuple[Optional[int], Optional[int]],
) -> float:
    """
    校验日期匹配度，参数为 parse_date 返回的 (年, 月)。

    - 任一方缺少年份 → 0
    - 年份相差 > 1 → DATE_HARD_REJECT
    - 同年：月份相同 0.2，相差 ≤ 2 为 0.1，相差更大为 0（可能是 01-01 占位符）；缺少月份 0.1
    - 年份相差 1 → 0
    """
    year_a, month_a = date_a
    year_b, month_b = date_b
    if not year_a or not year_b:
        return 0
    year_diff = abs(year_a - year_b)

    if year_diff > 1:
        return DATE_HARD_REJECT

    if year_diff == 0:
        if month_a and month_b:
            month_diff = abs(month_a - month_b)
            if month_diff > 2:
                return 0
            return 0.2 if month_diff == 0 else 0.1
        return 0.1
    return 0
