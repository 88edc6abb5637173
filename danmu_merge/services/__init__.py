from .conflict_detector import (
    DATE_HARD_REJECT,
    get_strict_media_type,
    check_media_type_mismatch,
    check_theatrical_exemption,
    check_title_subtitle_conflict,
    extract_season_markers,
    check_season_mismatch,
    has_same_season_marker,
    check_date_match,
)
from .match_finder import MATCH_THRESHOLD, find_secondary_match, strip_sim_title
from .episode_aligner import (
    EpisodeInfo,
    FilteredEpisode,
    extract_episode_info,
    get_special_episode_type,
    filter_episodes,
    find_best_alignment_offset,
)
from .merged_id import generate_safe_merged_id
from .merge_service import MergeService, LinkFusion, fuse_episode_links, apply_merge_logic

__all__ = [
    'DATE_HARD_REJECT',
    'get_strict_media_type',
    'check_media_type_mismatch',
    'check_theatrical_exemption',
    'check_title_subtitle_conflict',
    'extract_season_markers',
    'check_season_mismatch',
    'has_same_season_marker',
    'check_date_match',
    'MATCH_THRESHOLD',
    'find_secondary_match',
    'strip_sim_title',
    'EpisodeInfo',
    'FilteredEpisode',
    'extract_episode_info',
    'get_special_episode_type',
    'filter_episodes',
    'find_best_alignment_offset',
    'generate_safe_merged_id',
    'MergeService',
    'LinkFusion',
    'fuse_episode_links',
    'apply_merge_logic',
]
