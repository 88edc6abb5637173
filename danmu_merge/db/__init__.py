from .models import AnimeEntry, EpisodeLink
from .anime_store import AnimeRepository, AnimeStore, ANIME_REGION

__all__ = [
    'AnimeEntry',
    'EpisodeLink',
    'AnimeRepository',
    'AnimeStore',
    'ANIME_REGION',
]
