"""
文本清洗模块

提供源合并所需的标题标准化、括号剥离、ID 还原与日期解析等纯函数。
所有匹配、冲突检测、分集对齐都建立在这里的清洗结果之上。
"""

import re
import logging
from datetime import datetime
from typing import Any, Optional, Tuple

from opencc import OpenCC

logger = logging.getLogger(__name__)


# ============================================================================
# 常量 - 保留分隔符
# ============================================================================

# 组合ID的分隔符 (URL Safe)，分隔分集链接中来自不同源的 ID 片段
MERGE_DELIMITER = '$$$'
# 前端显示的源连接符，拼接到【】标签与 "from X" 后缀中
DISPLAY_CONNECTOR = '&'

_T2S = OpenCC('t2s')

CHINESE_SEASON_MAP = {
    '一': '1', '二': '2', '三': '3', '四': '4', '五': '5',
    '六': '6', '七': '7', '八': '8', '九': '9', '十': '10',
}

ROMAN_SEASON_MAP = {'I': '1', 'II': '2', 'III': '3', 'IV': '4'}


# ============================================================================
# 常量 - 正则模式
# ============================================================================

SOURCE_TAG_RE = re.compile(r'【.*?】')
REGION_NOTE_RE = re.compile(r'[(（]仅限.*?地区[)）]')
DUB_CN_RE = re.compile(r'[(（]?(?:普通话|国语|中文配音|中配)版?[)）]?')
DUB_ORIGINAL_RE = re.compile(r'[(（]?(?:日语|日配|原版)版?[)）]?')
PUNCTUATION_RE = re.compile(r'[!！?？,，.。、~～:：\-–—]')
WHITESPACE_RE = re.compile(r'\s+')

FINAL_SEASON_RE = re.compile(r'(?:The\s+)?Final\s+Season', re.IGNORECASE)
SEASON_RE = re.compile(r'(?:Season|S)\s*(\d+)', re.IGNORECASE)
CHINESE_SEASON_RE = re.compile(r'第([一二三四五六七八九十])季')
PART_RE = re.compile(r'(?:Part|P)[\s.]*(\d+)', re.IGNORECASE)
# 仅匹配独立的大写罗马数字
ROMAN_SEASON_RE = re.compile(r'(\s|^)(IV|III|II|I)(\s|$)')

PARENTHESES_RE = re.compile(r'[(（].*?[)）]')
SOURCE_SUFFIX_RE = re.compile(r'\s*from\s+.*$', re.IGNORECASE)
YEAR_TAIL_RE = re.compile(r'[(（]\d{4}[)）].*$')
DATE_FALLBACK_RE = re.compile(r'((?:19|20)\d{2})(?:\s*[-/.年]\s*(\d{1,2}))?')


# ============================================================================
# 标题标准化
# ============================================================================

def simplify(text: str) -> str:
    """繁体转简体"""
    if not text:
        return ''
    return _T2S.convert(text)


def clean_text(text: Optional[str]) -> str:
    """
    文本清洗：将文本转为简体，移除干扰标识，并对季数、章节进行标准化处理，
    用于提高匹配精度。

    规则顺序固定，任何规则的输出都不会再触发前面的规则，
    因此 clean_text(clean_text(x)) == clean_text(x)。

    Examples:
        "進擊的巨人 Season 2" → "进击的巨人 第2季"
        "【dandan】某科学的超电磁炮 III" → "某科学的超电磁炮 第3季"
        "无职转生 Part.2" → "无职转生 第2部分"
    """
    if not text:
        return ''

    # 繁体转简体
    clean = simplify(text)

    # 移除源标识如 【dandan】、地区限制标识如 (仅限台湾地区) 以及原版配音标识，
    # 移除后前后文本可能拼接出新的匹配，反复执行直到不再变化
    previous = None
    while clean != previous:
        previous = clean
        clean = SOURCE_TAG_RE.sub('', clean)
        clean = REGION_NOTE_RE.sub('', clean)
        clean = DUB_ORIGINAL_RE.sub('', clean)

    # 中文配音统一为 "中配版"；替换会吞掉前面的括号，同样执行到稳定
    previous = None
    while clean != previous:
        previous = clean
        clean = DUB_CN_RE.sub('中配版', clean)

    # 移除常见标点符号 (避免 "不行！" 和 "不行。" 被判为不同)
    clean = PUNCTUATION_RE.sub(' ', clean)
    clean = WHITESPACE_RE.sub(' ', clean)

    # 语义标准化：The Final Season -> 最终季
    clean = FINAL_SEASON_RE.sub('最终季', clean)
    # 季数标准化：Season 2, S2 -> 第2季
    clean = SEASON_RE.sub(lambda m: f"第{int(m.group(1))}季", clean)
    # 中文数字标准化：第二季 -> 第2季
    clean = CHINESE_SEASON_RE.sub(lambda m: f"第{CHINESE_SEASON_MAP[m.group(1)]}季", clean)
    # 章节Part标准化：Part 2, P2 -> 第2部分
    clean = PART_RE.sub(lambda m: f"第{int(m.group(1))}部分", clean)
    # 罗马数字标准化：III -> 第3季
    clean = ROMAN_SEASON_RE.sub(
        lambda m: f"{m.group(1)}第{ROMAN_SEASON_MAP[m.group(2)]}季{m.group(3)}", clean
    )

    # 压缩空格并转小写
    return WHITESPACE_RE.sub(' ', clean).lower().strip()


def remove_parentheses(text: Optional[str]) -> str:
    """
    移除标题中的所有括号内容。
    用于提取主标题进行比对，规避副标题翻译差异（如：(※不是不可能！？) vs (※似乎可行？)）。
    冲突检测需要括号内容，不应使用此函数。
    """
    if not text:
        return ''
    return PARENTHESES_RE.sub('', text).strip()


def strip_source_suffix(title: Optional[str]) -> str:
    """移除标题末尾的来源后缀，如 "葬送的芙莉莲(2023)【动漫】from dandan" 中的 " from dandan" """
    if not title:
        return ''
    return SOURCE_SUFFIX_RE.sub('', title)


def light_clean_title(title: Optional[str]) -> str:
    """
    轻量清洗：仅移除年份、【】标签和来源后缀，保留标题内部的空格和标点，
    用于识别 "主标题 + 副标题" 结构。
    """
    if not title:
        return ''
    s = simplify(title)
    # 移除年份标记及其后续内容
    s = YEAR_TAIL_RE.sub('', s)
    s = SOURCE_TAG_RE.sub('', s)
    s = SOURCE_SUFFIX_RE.sub('', s)
    return s.strip()


# ============================================================================
# ID / 日期
# ============================================================================

def sanitize_url(url_str: Any) -> str:
    """
    清洗并提取真实的 ID/URL。
    用于从组合或带前缀的字符串中还原出原始的请求 ID。

    Examples:
        "bilibili:12345$$$dandan:678" → "12345"
        "//v.qq.com/x/cover/abc.html" → "https://v.qq.com/x/cover/abc.html"
        "https://www.bilibili.com/bangumi/play/ep1" → 原样返回
    """
    if url_str is None or url_str == '':
        return ''

    # 去除可能存在的组合后缀，只取当前部分
    clean = str(url_str).split(MERGE_DELIMITER)[0].strip()

    # 自动修复被错误截断协议头的 URL
    if clean.startswith('//'):
        return 'https:' + clean

    # 尝试解析 "source:id" 格式
    m = re.match(r'^([^:]+):(.+)$', clean, re.DOTALL)
    if m:
        prefix = m.group(1).lower()
        body = m.group(2)

        # 如果前缀是 http/https，说明是原始 URL，保留
        if prefix in ('http', 'https'):
            return clean
        if re.match(r'^https?://', body, re.IGNORECASE):
            return body
        if body.startswith('//'):
            return 'https:' + body
        # 普通 ID
        return body

    return clean


def parse_date(date_str: Optional[str]) -> Tuple[Optional[int], Optional[int]]:
    """
    解析日期字符串，返回 (年份, 月份)。
    支持 ISO 格式 ("2023-10-01", "2023-10-01T00:00:00Z") 以及 "2023年10月"、"2023" 等宽松写法。
    无法解析时返回 (None, None)；只有年份时月份为 None。
    """
    if not date_str:
        return None, None
    raw = str(date_str).strip()
    try:
        d = datetime.fromisoformat(raw.replace('Z', '+00:00'))
        return d.year, d.month
    except ValueError:
        pass

    m = DATE_FALLBACK_RE.search(raw)
    if not m:
        return None, None
    year = int(m.group(1))
    month = int(m.group(2)) if m.group(2) else None
    if month is not None and not 1 <= month <= 12:
        month = None
    return year, month
