"""
YTSubs 유틸리티 함수 모듈
YouTube URL 파싱, VTT 파싱, 자막 텍스트 정제 등 공통 기능을 제공합니다.
"""

import re
import html
from typing import Optional
from urllib.parse import urlparse

from ytsubs.models.subtitle import SubtitleEntry


VIDEO_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{11}$")

# is_valid_youtube_url이 허용하는 호스트 (extract_video_id는 music. 등 다른 서브도메인도 받음)
VALID_YOUTUBE_HOSTS = frozenset({"youtube.com", "www.youtube.com", "m.youtube.com", "youtu.be"})

# ID 바로 뒤에는 구분자나 문자열 끝만 올 수 있음
_ID_END = r"(?=[&#?/]|$)"

# URL 패턴들
_URL_PATTERNS = [
    # 표준 watch URL: youtube.com/watch?v=VIDEO_ID
    re.compile(r"(?:youtube\.com/watch\?v=)([a-zA-Z0-9_-]{11})" + _ID_END),
    # 단축 URL: youtu.be/VIDEO_ID
    re.compile(r"(?:youtu\.be/)([a-zA-Z0-9_-]{11})" + _ID_END),
    # 임베드 URL: youtube.com/embed/VIDEO_ID
    re.compile(r"(?:youtube\.com/embed/)([a-zA-Z0-9_-]{11})" + _ID_END),
    # Shorts URL: youtube.com/shorts/VIDEO_ID
    re.compile(r"(?:youtube\.com/shorts/)([a-zA-Z0-9_-]{11})" + _ID_END),
    # 라이브 URL: youtube.com/live/VIDEO_ID
    re.compile(r"(?:youtube\.com/live/)([a-zA-Z0-9_-]{11})" + _ID_END),
    # v 파라미터가 다른 위치에 있는 경우
    re.compile(r"[?&]v=([a-zA-Z0-9_-]{11})" + _ID_END),
]

_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1F]')


def extract_video_id(url_or_id: Optional[str]) -> Optional[str]:
    """
    watch / youtu.be / embed / shorts / live URL 또는 11자리 ID에서 Video ID를 꺼냅니다.
    인식할 수 없으면 None을 반환합니다.
    """
    value = (url_or_id or "").strip()
    if not value:
        return None

    if VIDEO_ID_PATTERN.match(value):
        return value

    for pattern in _URL_PATTERNS:
        match = pattern.search(value)
        if match:
            return match.group(1)
    return None


def is_valid_youtube_url(url: Optional[str]) -> bool:
    """YouTube 호스트의 URL이면서 Video ID를 추출할 수 있는지 확인합니다."""
    if not url:
        return False

    parsed = urlparse(url.strip())
    if parsed.scheme not in ("http", "https"):
        return False
    if (parsed.hostname or "").lower() not in VALID_YOUTUBE_HOSTS:
        return False

    return extract_video_id(url) is not None


def parse_vtt_timestamp(timestamp: str) -> float:
    """
    VTT/SRT 타임스탬프를 초 단위로 변환합니다.
    HH:MM:SS.mmm, MM:SS.mmm 형식과 ',' 밀리초 구분자를 허용하며 해석할 수 없으면 0.0을 반환합니다.
    """
    parts = timestamp.strip().replace(",", ".").split(":")
    if len(parts) not in (2, 3):
        return 0.0

    try:
        seconds = float(parts[-1])
        for unit, part in zip((60, 3600), reversed(parts[:-1])):
            seconds += int(part) * unit
    except ValueError:
        return 0.0
    return seconds


_VTT_TIMING = re.compile(
    r"(\d{1,2}:)?(\d{2}):(\d{2})[.,](\d{3})\s*-->\s*(\d{1,2}:)?(\d{2}):(\d{2})[.,](\d{3})"
)


def _make_entry(start: float, end: float, text_lines: list[str]) -> Optional[SubtitleEntry]:
    text = " ".join(text_lines)
    # 인라인 태그 제거 (예: <c>, </c>, <00:00:00.000>)
    text = re.sub(r"<[^>]+>", "", text).strip()
    if not text:
        return None
    return SubtitleEntry(start=start, duration=max(0.0, end - start), text=text)


def parse_vtt_content(vtt_content: str) -> list[SubtitleEntry]:
    """
    VTT 파일 내용을 파싱하여 SubtitleEntry 리스트로 변환합니다.
    yt-dlp가 내려받은 자막 파일을 읽을 때 사용합니다.

    Args:
        vtt_content: VTT 파일 전체 내용

    Returns:
        SubtitleEntry 객체 리스트
    """
    entries: list[SubtitleEntry] = []

    lines = vtt_content.strip().splitlines()

    # WEBVTT 헤더 건너뛰기
    start_index = 0
    for i, line in enumerate(lines):
        if line.strip().upper().startswith("WEBVTT"):
            start_index = i + 1
            break

    current_start: Optional[float] = None
    current_end: float = 0.0
    current_text_lines: list[str] = []

    for line in lines[start_index:]:
        line = line.strip()

        # 빈 줄: 현재 큐 종료
        if not line:
            if current_start is not None and current_text_lines:
                entry = _make_entry(current_start, current_end, current_text_lines)
                if entry:
                    entries.append(entry)
            current_start = None
            current_text_lines = []
            continue

        # 큐 식별자 건너뛰기 (숫자만 있는 줄)
        if line.isdigit() and current_start is None:
            continue

        if _VTT_TIMING.search(line):
            start_part, end_part = line.split("-->", 1)
            current_start = parse_vtt_timestamp(start_part)
            current_end = parse_vtt_timestamp(end_part.strip().split()[0])  # 위치 정보 제거
            continue

        if current_start is not None:
            current_text_lines.append(line)

    # 마지막 큐 처리
    if current_start is not None and current_text_lines:
        entry = _make_entry(current_start, current_end, current_text_lines)
        if entry:
            entries.append(entry)

    return entries


def merge_duplicate_segments(entries: list[SubtitleEntry]) -> list[SubtitleEntry]:
    """
    연속된 동일 텍스트 항목을 병합합니다.
    YouTube 자동 자막(VTT)에서 자주 발생하는 중복을 처리합니다.

    Args:
        entries: 원본 항목 리스트

    Returns:
        병합된 항목 리스트
    """
    if not entries:
        return []

    merged: list[SubtitleEntry] = []
    current = entries[0]

    for next_entry in entries[1:]:
        # 텍스트가 동일하고 시간이 연속적인 경우 병합
        if current.text == next_entry.text and abs(current.end - next_entry.start) < 0.5:
            current = SubtitleEntry(
                start=current.start,
                duration=max(current.end, next_entry.end) - current.start,
                text=current.text,
            )
        else:
            merged.append(current)
            current = next_entry

    merged.append(current)
    return merged


def clean_subtitle_text(text: str) -> str:
    """
    자막 텍스트를 정제합니다.

    - HTML 엔티티 복원 (&#39; &quot; &amp; 등)
    - 리터럴 "\\n" 및 줄바꿈을 공백으로
    - 여러 공백을 하나로, 앞뒤 공백 제거

    Args:
        text: 원본 자막 텍스트

    Returns:
        정제된 텍스트
    """
    text = html.unescape(text)
    text = text.replace("\\n", " ")
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def sanitize_filename(name: str) -> str:
    """파일 이름에 쓸 수 없는 문자를 '_'로 바꿉니다."""
    return _UNSAFE_FILENAME_CHARS.sub("_", name)
