"""
YTSubs 데이터 모델 패키지
"""

from .subtitle import (
    SubtitleType,
    SubtitleFormat,
    SubtitleEntry,
    CaptionTrack,
    VideoInfo,
    SubtitleData,
    VideoInfoResponse,
    SubtitlesResponse,
    ParseSubtitlesRequest,
    ParseSubtitlesResponse,
    CaptionTrackInfo,
    CaptionTracksResponse,
)

__all__ = [
    "SubtitleType",
    "SubtitleFormat",
    "SubtitleEntry",
    "CaptionTrack",
    "VideoInfo",
    "SubtitleData",
    "VideoInfoResponse",
    "SubtitlesResponse",
    "ParseSubtitlesRequest",
    "ParseSubtitlesResponse",
    "CaptionTrackInfo",
    "CaptionTracksResponse",
]
