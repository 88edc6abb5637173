"""
源合并服务

按配置组把多个源的同一部番剧合并为一个条目：
每个分集链接的 url 中拼接各源的 ID，标题中展示参与合并的源。

使用方式:
    service = MergeService(store, options)
    await service.apply_merge_logic(cur_animes)
"""

import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

from danmu_merge.core.config import MergeGroup, MergeOptions, resolve_merge_options
from danmu_merge.db.anime_store import AnimeRepository
from danmu_merge.db.models import AnimeEntry, EpisodeLink
from danmu_merge.utils.text_normalizer import (
    DISPLAY_CONNECTOR,
    MERGE_DELIMITER,
    sanitize_url,
    strip_source_suffix,
)
from .episode_aligner import (
    FilteredEpisode,
    filter_episodes,
    find_best_alignment_offset,
    get_special_episode_type,
)
from .match_finder import find_secondary_match
from .merged_id import generate_safe_merged_id

# 总集数超过该值时才校验覆盖率
RATIO_CHECK_MIN_TOTAL = 5
# 覆盖率下限，例如 12 集只匹配上 2 集 (16.7%) 视为异常关联
MIN_MERGE_RATIO = 0.18

LINK_LABEL_RE = re.compile(r'^【([^】]+)】')
SECONDARY_LABEL_RE = re.compile(r'^【([^】\d]+)\d*】')


@dataclass
class LinkFusion:
    """一次主源与副源的分集融合结果，links 是派生条目 links 的副本"""
    links: List[EpisodeLink]
    merged_count: int = 0
    mapping: List[Tuple[int, str]] = field(default_factory=list)

    def mapping_text(self) -> str:
        return '\n'.join(text for _, text in sorted(self.mapping, key=lambda e: e[0]))


@dataclass
class _RunState:
    new_merged: List[AnimeEntry] = field(default_factory=list)
    # 全局去重签名，防止不同配置组生成完全相同的内容
    signatures: Set[str] = field(default_factory=set)
    # 全局被消耗的 ID，用于最终统一清理原始条目
    consumed: Set[str] = field(default_factory=set)


def _link_short(link: EpisodeLink, index: int) -> str:
    return link.name or link.title or f"Index {index}"


def fuse_episode_links(
    derived_links: List[EpisodeLink],
    filtered_primary: List[FilteredEpisode],
    filtered_secondary: List[FilteredEpisode],
    offset: int,
    primary_source: str,
    secondary_source: str,
) -> LinkFusion:
    """
    在派生 links 的副本上执行分集融合。

    过滤后副源第 k 集对应过滤后主源第 k + offset 集，实际修改的是该主源分集在
    原始 links 中的位置。特殊集类型不一致的配对会被略过。
    """
    fusion = LinkFusion(links=[link.model_copy() for link in derived_links])
    matched: Set[int] = set()

    for k, item in enumerate(filtered_secondary):
        pos = k + offset
        source_link = item.link
        s_short = _link_short(source_link, k)

        if not 0 <= pos < len(filtered_primary):
            fusion.mapping.append((pos, f"   [落单] (主源越界) <-> {s_short}"))
            continue

        target = fusion.links[filtered_primary[pos].original_index]
        p_short = _link_short(target, pos)

        if get_special_episode_type(target.title) != get_special_episode_type(source_link.title):
            fusion.mapping.append((pos, f"   [略过] {p_short} =/= {s_short} (特殊集类型不匹配)"))
            continue

        # ID 合并：首次合并时为主源 ID 补上源前缀
        id_b = sanitize_url(source_link.url)
        current_url = target.url
        if MERGE_DELIMITER not in current_url and not current_url.startswith(f"{primary_source}:"):
            current_url = f"{primary_source}:{current_url}"
        target.url = f"{current_url}{MERGE_DELIMITER}{secondary_source}:{id_b}"

        fusion.mapping.append((pos, f"   [匹配] {p_short} <-> {s_short}"))
        matched.add(pos)

        if target.title:
            label = secondary_source
            if source_link.title:
                m = SECONDARY_LABEL_RE.match(source_link.title)
                if m:
                    label = m.group(1).strip()
            target.title = LINK_LABEL_RE.sub(
                lambda m: f"【{m.group(1)}{DISPLAY_CONNECTOR}{label}】", target.title, count=1
            )
        fusion.merged_count += 1

    for pos, item in enumerate(filtered_primary):
        if pos not in matched:
            p_short = _link_short(fusion.links[item.original_index], pos)
            fusion.mapping.append((pos, f"   [落单] {p_short} <-> (副源缺失或被略过)"))

    return fusion


class MergeService:
    """
    源合并编排

    遍历配置组，组内按优先级依次让每个源充当主源 (主源轮替)，
    去匹配其后的所有副源，实现一主多从的链式合并。
    """

    def __init__(self, store: AnimeRepository, options: MergeOptions):
        self.store = store
        self.options = options
        self.logger = logging.getLogger(self.__class__.__name__)

    def is_merge_ratio_valid(
        self, merged_count: int, total_a: int, total_b: int, source_a: str, source_b: str
    ) -> bool:
        """校验合并覆盖率，防止因少量巧合匹配导致错误关联"""
        exempt = self.options.ratio_exempt_sources
        # 豁免源（可能包含未放送集数）不校验覆盖率
        if source_a in exempt or source_b in exempt:
            return True

        max_total = max(total_a, total_b)
        if max_total == 0:
            return False

        ratio = merged_count / max_total
        if max_total > RATIO_CHECK_MIN_TOTAL and ratio < MIN_MERGE_RATIO:
            return False
        return True

    async def apply_merge_logic(self, cur_animes: List[AnimeEntry]) -> None:
        """
        执行源合并，原地修改 cur_animes：
        新合并的条目按产生顺序排在最前，其后是未被消耗的原始条目；
        被消耗的原始条目与上一轮的合并结果 (is_merged) 被移除。
        """
        groups = self.options.groups
        if not groups:
            return

        self.logger.info(f"[Merge] 启动源合并策略，配置: {[g.priority_chain for g in groups]}")

        state = _RunState()
        for group in groups:
            await self._merge_group(group, cur_animes, state)

        remaining = [a for a in cur_animes if not a.is_merged and a.key not in state.consumed]
        cur_animes[:] = state.new_merged + remaining

    async def _merge_group(self, group: MergeGroup, cur_animes: List[AnimeEntry], state: _RunState) -> None:
        # 组内已处理集合：允许不同组使用同一个原始条目，但同一组内防止重复使用
        group_consumed: Set[str] = set()
        chain = group.priority_chain
        fingerprint = group.fingerprint

        # 主源轮替：依次尝试将每个源作为主源，去匹配列表后面的所有副源
        for i, primary_source in enumerate(chain[:-1]):
            available_secondaries = chain[i + 1:]
            all_source_items = [a for a in cur_animes if a.source == primary_source]

            if not all_source_items:
                active_remaining = sum(
                    1 for src in available_secondaries
                    if any(a.source == src and a.key not in group_consumed for a in cur_animes)
                )
                if active_remaining >= 2:
                    self.logger.info(f"[Merge] 轮替: 源 [{primary_source}] 无可用结果，尝试下一顺位.")
                continue

            # 已经被之前的合并消耗掉的条目静默跳过
            primary_items = [a for a in all_source_items if a.key not in group_consumed]

            for p_anime in primary_items:
                try:
                    await self._merge_primary(
                        p_anime, primary_source, available_secondaries,
                        cur_animes, fingerprint, group_consumed, state,
                    )
                except Exception as e:
                    self.logger.error(f"[Merge] 处理主源条目 '{p_anime.anime_title}' 时发生错误: {e}", exc_info=True)

    async def _merge_primary(
        self,
        p_anime: AnimeEntry,
        primary_source: str,
        available_secondaries: List[str],
        cur_animes: List[AnimeEntry],
        fingerprint: str,
        group_consumed: Set[str],
        state: _RunState,
    ) -> None:
        cached_p = await self.store.find_cached_entry(p_anime.anime_id)
        if not cached_p or not cached_p.links:
            self.logger.warning(f"[Merge] 主源数据不完整，跳过: {p_anime.anime_title}")
            return

        log_title_a = strip_source_suffix(p_anime.anime_title)
        derived = cached_p.clone()

        merged_sources: List[str] = []
        signature_parts: List[str] = [p_anime.key]
        episode_filter = self.options.episode_filter

        for sec_source in available_secondaries:
            candidates = [a for a in cur_animes if a.source == sec_source and a.key not in group_consumed]
            if not candidates:
                continue

            match = find_secondary_match(p_anime, candidates)
            if match is None:
                continue

            cached_match = await self.store.find_cached_entry(match.anime_id)
            if not cached_match or not cached_match.links:
                self.logger.debug(f"[Merge] 副源数据不完整，跳过: {match.anime_title}")
                continue

            log_title_b = strip_source_suffix(cached_match.anime_title)
            filtered_p = filter_episodes(derived.links, episode_filter)
            filtered_m = filter_episodes(cached_match.links, episode_filter)
            offset = find_best_alignment_offset(filtered_p, filtered_m)
            if offset != 0:
                self.logger.info(
                    f"[Merge] 集数自动对齐 ({sec_source}): Offset={offset} "
                    f"(P:{len(filtered_p)}, S:{len(filtered_m)})"
                )

            fusion = fuse_episode_links(
                derived.links, filtered_p, filtered_m, offset, primary_source, sec_source
            )
            if fusion.merged_count == 0:
                continue

            if not self.is_merge_ratio_valid(
                fusion.merged_count, len(filtered_p), len(filtered_m), primary_source, sec_source
            ):
                self.logger.info(
                    f"[Merge] 关联取消: [{primary_source}] {log_title_a} <-> [{sec_source}] {log_title_b} "
                    f"(匹配率过低: {fusion.merged_count}/{max(len(filtered_p), len(filtered_m))})"
                )
                continue

            self.logger.info(
                f"[Merge] 关联成功: [{primary_source}] {log_title_a} <-> [{sec_source}] {log_title_b} "
                f"(本次合并 {fusion.merged_count} 集)"
            )
            if fusion.mapping:
                self.logger.info(f"[Merge] [{sec_source}] 映射详情:\n{fusion.mapping_text()}")

            derived.links = fusion.links
            derived.anime_id = generate_safe_merged_id(derived.anime_id, match.anime_id, fingerprint)
            derived.bangumi_id = str(derived.anime_id)

            # 该副源条目已被消耗，本组内不能再作为后续轮次的主源
            group_consumed.add(match.key)
            state.consumed.add(match.key)
            merged_sources.append(sec_source)
            signature_parts.append(match.key)

        if not merged_sources:
            return

        signature = '|'.join(signature_parts)
        if signature in state.signatures:
            self.logger.info(f"[Merge] 检测到重复的合并结果 (Signature: {signature})，已自动隐去冗余条目。")
            return
        state.signatures.add(signature)

        joined_sources = DISPLAY_CONNECTOR.join(merged_sources)
        derived.anime_title = derived.anime_title.replace(
            f"from {primary_source}", f"from {primary_source}{DISPLAY_CONNECTOR}{joined_sources}", 1
        )
        derived.source = primary_source

        await self.store.add_entry(derived)
        state.new_merged.append(derived)

        group_consumed.add(p_anime.key)
        state.consumed.add(p_anime.key)


async def apply_merge_logic(
    cur_animes: List[AnimeEntry],
    store: AnimeRepository,
    options: Optional[MergeOptions] = None,
) -> None:
    """便捷入口：未指定 options 时从配置中解析"""
    if options is None:
        options, _ = resolve_merge_options()
    await MergeService(store, options).apply_merge_logic(cur_animes)
