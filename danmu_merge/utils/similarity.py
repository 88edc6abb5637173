"""
标题相似度计算

结合编辑距离（顺序敏感）与 Dice 系数（字符重合度，顺序无关），
在 clean_text 清洗后的文本上计算 0.0 - 1.0 的综合相似度。
"""

import re
from typing import Optional

from rapidfuzz.distance import Levenshtein

from .text_normalizer import clean_text

_WHITESPACE_RE = re.compile(r'\s')


def edit_distance(s1: str, s2: str) -> int:
    """计算编辑距离 (Levenshtein Distance)，插入/删除/替换代价均为 1"""
    return Levenshtein.distance(s1 or '', s2 or '')


def calculate_dice_similarity(s1: Optional[str], s2: Optional[str]) -> float:
    """
    计算 Dice 相似度系数 (基于去重后的字符集合，忽略空白)。
    用于解决长标题意译差异（如 "我怎么可能" vs "我们不可能"），对语序不敏感。

    两者都为空返回 1.0，仅一方为空返回 0.0。
    """
    set1 = set(_WHITESPACE_RE.sub('', s1 or ''))
    set2 = set(_WHITESPACE_RE.sub('', s2 or ''))

    if not set1 and not set2:
        return 1.0
    if not set1 or not set2:
        return 0.0

    # Dice 公式: 2 * |A∩B| / (|A| + |B|)
    return 2.0 * len(set1 & set2) / (len(set1) + len(set2))


def calculate_similarity(str1: Optional[str], str2: Optional[str]) -> float:
    """
    计算两个字符串的综合相似度 (0.0 - 1.0)，对参数顺序对称。

    1. 清洗后完全相同 → 1.0
    2. 一方包含另一方 → 0.8 + 0.2 * 短/长
    3. 否则取 编辑距离得分 与 Dice 系数 的较大值
    """
    if not str1 or not str2:
        return 0.0

    s1 = clean_text(str1)
    s2 = clean_text(str2)

    if s1 == s2:
        return 1.0

    # 包含关系 (给予较高基础分)
    if s1 in s2 or s2 in s1:
        len_ratio = min(len(s1), len(s2)) / max(len(s1), len(s2))
        return 0.8 + len_ratio * 0.2

    max_length = max(len(s1), len(s2))
    edit_score = 1.0 - edit_distance(s1, s2) / max_length

    return max(edit_score, calculate_dice_similarity(s1, s2))
