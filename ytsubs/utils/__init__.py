"""
YTSubs 유틸리티 패키지
"""

from .parsers import (
    extract_video_id,
    is_valid_youtube_url,
    parse_vtt_timestamp,
    parse_vtt_content,
    merge_duplicate_segments,
    clean_subtitle_text,
    sanitize_filename,
)

from .timedtext import (
    SubtitleParseError,
    parse_timedtext_xml,
    process_entries,
    load_entries,
    entries_to_transcript_xml,
    json3_to_entries,
    json3_to_transcript_xml,
)

from .formatters import (
    format_timestamp,
    format_vtt_timestamp,
    format_srt_timestamp,
    format_clock,
    to_vtt,
    to_srt,
    to_txt,
    convert_entries,
)

__all__ = [
    # URL / 텍스트
    "extract_video_id",
    "is_valid_youtube_url",
    "parse_vtt_timestamp",
    "parse_vtt_content",
    "merge_duplicate_segments",
    "clean_subtitle_text",
    "sanitize_filename",
    # timedtext
    "SubtitleParseError",
    "parse_timedtext_xml",
    "process_entries",
    "load_entries",
    "entries_to_transcript_xml",
    "json3_to_entries",
    "json3_to_transcript_xml",
    # 출력 포맷
    "format_timestamp",
    "format_vtt_timestamp",
    "format_srt_timestamp",
    "format_clock",
    "to_vtt",
    "to_srt",
    "to_txt",
    "convert_entries",
]
