"""
YTSubs 모듈 패키지
핵심 비즈니스 로직을 포함합니다.
"""

from .subtitle_extractor import (
    SubtitleExtractor,
    SubtitleExtractionError,
    InvalidVideoError,
    NoCaptionsError,
    UpstreamError,
    CaptionPayload,
    extract_player_response,
    extract_title,
    caption_tracks_from_player,
    select_caption_track,
    extract_subtitle,
    list_tracks,
    get_extractor,
)

from .youtube_client import (
    YouTubeClient,
    YouTubeRequestError,
)

from .cache import (
    PlayerResponseCache,
    CachedPage,
    get_cache,
)

__all__ = [
    # 자막 추출
    "SubtitleExtractor",
    "SubtitleExtractionError",
    "InvalidVideoError",
    "NoCaptionsError",
    "UpstreamError",
    "CaptionPayload",
    "extract_player_response",
    "extract_title",
    "caption_tracks_from_player",
    "select_caption_track",
    "extract_subtitle",
    "list_tracks",
    "get_extractor",
    # HTTP
    "YouTubeClient",
    "YouTubeRequestError",
    # 캐시
    "PlayerResponseCache",
    "CachedPage",
    "get_cache",
]
