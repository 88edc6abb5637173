import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def to_camel(snake_str: str) -> str:
    """将 snake_case 字符串转换为 camelCase。"""
    components = snake_str.split('_')
    # 我们将除第一个之外的每个组件的首字母大写，然后连接起来。
    return components[0] + ''.join(x.title() for x in components[1:])


def get_comment_time(item: Optional[Dict[str, Any]]) -> float:
    """
    读取一条弹幕的出现时间（秒）。

    优先使用 't' 字段；否则解析 'p' 属性的第一段
    （p属性格式：时间,类型,字号,颜色,时间戳,弹幕池,用户ID,弹幕ID）。
    无法解析时返回 0。
    """
    if not item:
        return 0.0
    t = item.get('t')
    if t is not None:
        try:
            return float(t)
        except (TypeError, ValueError):
            return 0.0
    p_attr = item.get('p')
    if isinstance(p_attr, str) and p_attr:
        try:
            return float(p_attr.split(',')[0])
        except ValueError:
            return 0.0
    return 0.0


def merge_danmaku_list(
    list_a: Optional[List[Dict[str, Any]]],
    list_b: Optional[List[Dict[str, Any]]],
) -> List[Dict[str, Any]]:
    """
    合并两个弹幕列表并按时间排序。

    排序是稳定的：时间相同的弹幕保持 list_a 在前、list_b 在后的原始顺序。
    """
    final = [*(list_a or []), *(list_b or [])]
    final.sort(key=get_comment_time)
    logger.debug(f"弹幕列表合并完成: {len(list_a or [])} + {len(list_b or [])} -> {len(final)} 条")
    return final
