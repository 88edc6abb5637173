from .common import to_camel, get_comment_time, merge_danmaku_list
from .similarity import edit_distance, calculate_dice_similarity, calculate_similarity
from .text_normalizer import (
    MERGE_DELIMITER,
    DISPLAY_CONNECTOR,
    clean_text,
    remove_parentheses,
    sanitize_url,
    parse_date,
    light_clean_title,
    strip_source_suffix,
)

__all__ = [
    'to_camel',
    'get_comment_time',
    'merge_danmaku_list',
    'edit_distance',
    'calculate_dice_similarity',
    'calculate_similarity',
    'MERGE_DELIMITER',
    'DISPLAY_CONNECTOR',
    'clean_text',
    'remove_parentheses',
    'sanitize_url',
    'parse_date',
    'light_clean_title',
    'strip_source_suffix',
]
