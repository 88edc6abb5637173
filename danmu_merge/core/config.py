import os
import re
import logging
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

logger = logging.getLogger(__name__)

# 允许参与合并的源
ALLOWED_SOURCES = [
    '360', 'vod', 'tmdb', 'douban', 'tencent', 'youku', 'iqiyi', 'imgo', 'bilibili',
    'migu', 'sohu', 'leshi', 'xigua', 'maiduidui', 'renren', 'hanjutv', 'bahamut',
    'dandan', 'animeko', 'custom',
]

# 默认的剧集标题过滤关键词（预告/花絮/访谈等非正片内容）
DEFAULT_EPISODE_TITLE_FILTER = (
    '(特别|惊喜|纳凉)?企划|合伙人手记|超前(营业|vlog)?|速览|vlog|reaction|纯享|加更(版|篇)?|抢先(看|版|集|篇)?|抢鲜|预告|花絮(独家)?|'
    '特辑|彩蛋|专访|幕后(故事|花絮|独家)?|直播(陪看|回顾)?|未播(片段)?|衍生|番外|会员(专享|加长|尊享|专属|版)?|片花|精华|看点|速看|解读|影评|解说|吐槽|盘点|拍摄花絮|制作花絮|幕后花絮|未播花絮|独家花絮|'
    '花絮特辑|先导预告|终极预告|正式预告|官方预告|彩蛋片段|删减片段|未播片段|番外彩蛋|精彩片段|精彩看点|精彩回顾|精彩集锦|看点解析|看点预告|'
    'NG镜头|NG花絮|番外篇|番外特辑|制作特辑|拍摄特辑|幕后特辑|导演特辑|演员特辑|片尾曲|插曲|高光回顾|背景音乐|OST|音乐MV|歌曲MV|前季回顾|'
    '剧情回顾|往期回顾|内容总结|剧情盘点|精选合集|剪辑合集|混剪视频|独家专访|演员访谈|导演访谈|主创访谈|媒体采访|发布会采访|采访|陪看(记)?|'
    '试看版|短剧|精编|Plus|独家版|特别版|短片|发布会|解忧局|走心局|火锅局|巅峰时刻|坞里都知道|福持目标坞民|观察室|上班那点事儿|'
    '周top|赛段|直拍|REACTION|VLOG|全纪录|开播|先导|总宣|展演|集锦|旅行日记|精彩分享|剧情揭秘'
)


# 1. 为配置的不同部分创建 Pydantic 模型，提供类型提示和默认值
class MergeConfig(BaseModel):
    # 源合并配置组，组之间用 "," 或 ";" 分隔，组内用 "&" 分隔，第一个为主源
    # 例如: "dandan&animeko&bilibili,iqiyi&youku"
    source_pairs: str = ""
    enable_episode_filter: bool = False
    # 自定义过滤关键词，留空则使用内置的默认关键词
    episode_title_filter: str = ""
    # 免除合并覆盖率校验的源（可能包含未放送集数，总集数差异大）
    ratio_exempt_sources: List[str] = ["animeko"]
    allowed_sources: List[str] = ALLOWED_SOURCES


class LogConfig(BaseModel):
    level: str = "INFO"
    file_path: str = ""


# 缓存配置
class CacheConfig(BaseModel):
    memory_maxsize: int = 1024          # 内存缓存最大条目数
    memory_default_ttl: int = 0         # 内存缓存默认 TTL（秒），0 表示不过期


# 2. 创建一个自定义的配置源，用于从 YAML 文件加载设置
class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    def __init__(self, settings_cls: type[BaseSettings]):
        super().__init__(settings_cls)
        # 允许通过环境变量指定配置文件路径，默认读取工作目录下的 config/config.yml
        self.yaml_file = Path(os.getenv("DANMU_CONFIG_FILE", "config/config.yml"))

    def get_field_value(self, field, field_name):
        return None, None, False

    def __call__(self) -> Dict[str, Any]:
        if not self.yaml_file.is_file():
            return {}
        with open(self.yaml_file, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}


# 3. 定义主设置类，它将聚合所有配置
class Settings(BaseSettings):
    merge: MergeConfig = MergeConfig()
    log: LogConfig = LogConfig()
    cache: CacheConfig = CacheConfig()

    # 为环境变量设置前缀，避免与系统变量冲突
    # 例如 DANMU_MERGE__SOURCE_PAIRS="dandan&animeko"
    model_config = SettingsConfigDict(
        env_prefix="DANMU_",
        case_sensitive=False,
        env_nested_delimiter="__",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # 加载源优先级: 初始化参数 > 环境变量 > .env 文件 > YAML 文件 > 文件密钥 > 默认值
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


settings = Settings()


# ============================================================================
# 合并选项解析
# ============================================================================

@dataclass(frozen=True)
class MergeGroup:
    """一个源合并配置组：主源 + 按优先级排列的副源"""
    primary: str
    secondaries: Tuple[str, ...]

    @property
    def priority_chain(self) -> List[str]:
        return [self.primary, *self.secondaries]

    @property
    def fingerprint(self) -> str:
        """配置组签名，作为合并 ID 的盐值，区分不同配置组"""
        return '&'.join(self.priority_chain)


@dataclass
class ConfigDiagnostics:
    """记录解析配置时读取过的键和产生的警告，随配置一起返回"""
    accessed: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def record(self, key: str, value: Any) -> None:
        self.accessed[key] = value

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)


@dataclass
class MergeOptions:
    groups: List[MergeGroup] = field(default_factory=list)
    episode_filter: Optional[re.Pattern] = None
    ratio_exempt_sources: frozenset = frozenset({"animeko"})


def parse_merge_groups(
    raw: str,
    allowed_sources: Optional[List[str]] = None,
    diagnostics: Optional[ConfigDiagnostics] = None,
) -> List[MergeGroup]:
    """
    解析源合并配置字符串。

    "dandan&animeko&bilibili,iqiyi&youku" →
        [MergeGroup('dandan', ('animeko', 'bilibili')), MergeGroup('iqiyi', ('youku',))]

    未知源和组内重复源会被忽略；去重后不足两个源的组被丢弃。
    """
    diagnostics = diagnostics if diagnostics is not None else ConfigDiagnostics()
    allowed = set(allowed_sources) if allowed_sources is not None else None
    groups: List[MergeGroup] = []

    for group_str in re.split(r'[,;]', raw or ''):
        group_str = group_str.strip()
        if not group_str:
            continue
        chain: List[str] = []
        for name in group_str.split('&'):
            name = name.strip()
            if not name:
                continue
            if allowed is not None and name not in allowed:
                diagnostics.warn(f"源合并配置中包含未知源 '{name}'，已忽略")
                continue
            if name in chain:
                continue
            chain.append(name)
        if len(chain) < 2:
            diagnostics.warn(f"源合并配置组 '{group_str}' 有效源不足两个，已忽略")
            continue
        groups.append(MergeGroup(primary=chain[0], secondaries=tuple(chain[1:])))

    diagnostics.record('MERGE_SOURCE_PAIRS', [g.priority_chain for g in groups])
    return groups


def compile_episode_filter(
    keywords: str,
    enabled: bool = True,
    diagnostics: Optional[ConfigDiagnostics] = None,
) -> Optional[re.Pattern]:
    """
    编译剧集标题过滤正则 ^(.*?)(?:关键词)(.*?)$。
    过滤关闭时返回 None；正则非法时记录警告并返回 None（不过滤）。
    """
    diagnostics = diagnostics if diagnostics is not None else ConfigDiagnostics()
    diagnostics.record('ENABLE_EPISODE_FILTER', enabled)
    if not enabled:
        return None

    keywords = (keywords or '').strip() or DEFAULT_EPISODE_TITLE_FILTER
    diagnostics.record('EPISODE_TITLE_FILTER', keywords)
    try:
        return re.compile(f'^(.*?)(?:{keywords})(.*?)$')
    except re.error as e:
        diagnostics.warn(f"剧集标题过滤正则格式错误，已禁用过滤: '{keywords}'. 错误: {e}")
        return None


def resolve_merge_options(app_settings: Optional[Settings] = None) -> Tuple[MergeOptions, ConfigDiagnostics]:
    """从配置中解析合并选项，同时返回本次解析的诊断信息"""
    app_settings = app_settings or settings
    merge_config = app_settings.merge
    diagnostics = ConfigDiagnostics()

    groups = parse_merge_groups(merge_config.source_pairs, merge_config.allowed_sources, diagnostics)
    episode_filter = compile_episode_filter(
        merge_config.episode_title_filter, merge_config.enable_episode_filter, diagnostics
    )
    exempt = frozenset(s.strip() for s in merge_config.ratio_exempt_sources if s.strip())
    diagnostics.record('RATIO_EXEMPT_SOURCES', sorted(exempt))

    return MergeOptions(groups=groups, episode_filter=episode_filter, ratio_exempt_sources=exempt), diagnostics
