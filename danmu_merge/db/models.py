"""
番剧条目数据模型

字段使用 snake_case，对外序列化时使用 camelCase 别名，
与弹幕 API 的 JSON 结构 (animeId / animeTitle / typeDescription / links ...) 保持一致。
"""
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, PrivateAttr, field_validator

from danmu_merge.utils.common import to_camel


class EpisodeLink(BaseModel):
    """单集链接。url 可能已经是多个源 ID 用保留分隔符拼接后的组合值。"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='allow')

    name: Optional[str] = None
    url: str = ""
    title: Optional[str] = None

    @field_validator('url', mode='before')
    @classmethod
    def _url_as_str(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @property
    def display_title(self) -> str:
        return self.title or self.name or ""


class AnimeEntry(BaseModel):
    """
    某个源产出的番剧条目。

    条目由缓存持有；合并流程只修改通过 clone() 得到的副本，
    原始缓存条目永远不会被改写。
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='allow')

    anime_id: Union[int, str]
    bangumi_id: Optional[str] = None
    anime_title: str = ""
    type: Optional[str] = None
    type_description: Optional[str] = None
    image_url: Optional[str] = None
    start_date: Optional[str] = None
    episode_count: Optional[int] = None
    rating: Optional[float] = None
    source: str = ""
    links: Optional[List[EpisodeLink]] = None
    # 标记上一轮合并产出的条目，最终清理时会被移除
    is_merged: bool = False

    _best_episode_count: int = PrivateAttr(default=0)

    def model_post_init(self, __context: Any) -> None:
        # 集数回退规则只在构造时计算一次：episodeCount 为正数时使用它，否则取 links 长度
        if self.episode_count and self.episode_count > 0:
            self._best_episode_count = self.episode_count
        else:
            self._best_episode_count = len(self.links) if self.links else 0

    @property
    def key(self) -> str:
        """用于集合/字典比较的 ID 键，统一为字符串以兼容数字与字符串 ID"""
        return str(self.anime_id)

    @property
    def best_episode_count(self) -> int:
        return self._best_episode_count

    def clone(self) -> "AnimeEntry":
        """结构化值拷贝（links 一并复制），副本可被独立修改"""
        return self.model_copy(deep=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
