from typing import Union

_MERGED_ID_BASE = 1_000_000_000


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def generate_safe_merged_id(id1: Union[int, str], id2: Union[int, str], salt: str = '') -> int:
    """
    生成符合 int32 范围的合并 ID。

    对 "{id1}_{id2}_{salt}" 的 UTF-16 码元做 hash = hash * 31 + c 的 32 位回绕哈希，
    取绝对值后映射到 [1_000_000_000, 1_999_999_999]。
    salt 通常为配置组签名，用于区分不同合并组产生的 ID。
    """
    text = f"{id1}_{id2}_{salt}"
    data = text.encode('utf-16-le')
    h = 0
    for i in range(0, len(data), 2):
        code_unit = data[i] | (data[i + 1] << 8)
        h = _to_int32(h * 31 + code_unit)
    return abs(h) % _MERGED_ID_BASE + _MERGED_ID_BASE
