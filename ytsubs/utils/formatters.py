"""
자막 출력 포맷 변환 모듈
SubtitleEntry 리스트를 VTT / SRT / TXT 문자열로 변환합니다.
"""

from typing import Union

from ytsubs.models.subtitle import SubtitleEntry, SubtitleFormat
from ytsubs.utils.timedtext import SubtitleParseError


def format_timestamp(seconds: float, separator: str = ".") -> str:
    """
    초 단위 시간을 HH:MM:SS{separator}mmm 형식으로 변환합니다.
    밀리초는 반올림하며, 24시간을 넘어도 시간 값이 돌아가지 않습니다.

    Example:
        >>> format_timestamp(3723.456)
        '01:02:03.456'
    """
    total_ms = int(round(max(0.0, seconds) * 1000))
    hours, remainder = divmod(total_ms, 3_600_000)
    minutes, remainder = divmod(remainder, 60_000)
    secs, ms = divmod(remainder, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}{separator}{ms:03d}"


def format_vtt_timestamp(seconds: float) -> str:
    return format_timestamp(seconds, ".")


def format_srt_timestamp(seconds: float) -> str:
    return format_timestamp(seconds, ",")


def format_clock(seconds: float) -> str:
    """화면 표시용 MM:SS 형식"""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"


def _cue_blocks(entries: list[SubtitleEntry], time_format) -> str:
    blocks = []
    for index, entry in enumerate(entries, start=1):
        start = time_format(entry.start)
        end = time_format(entry.end)
        blocks.append(f"{index}\n{start} --> {end}\n{entry.text}\n\n")
    return "".join(blocks)


def to_vtt(entries: list[SubtitleEntry]) -> str:
    return "WEBVTT\n\n" + _cue_blocks(entries, format_vtt_timestamp)


def to_srt(entries: list[SubtitleEntry]) -> str:
    return _cue_blocks(entries, format_srt_timestamp)


def to_txt(entries: list[SubtitleEntry]) -> str:
    return "".join(f"{entry.text}\n" for entry in entries)


_CONVERTERS = {
    SubtitleFormat.VTT: to_vtt,
    SubtitleFormat.SRT: to_srt,
    SubtitleFormat.TXT: to_txt,
}


def convert_entries(entries: list[SubtitleEntry], fmt: Union[SubtitleFormat, str]) -> str:
    """
    자막 항목을 지정한 포맷으로 변환합니다.

    Raises:
        ValueError: 지원하지 않는 포맷
        SubtitleParseError: 자막 항목이 비어 있는 경우
    """
    try:
        fmt = SubtitleFormat(fmt)
    except ValueError:
        raise ValueError(f"지원하지 않는 자막 포맷입니다: {fmt}")

    if not entries:
        raise SubtitleParseError("자막 내용이 비어 있습니다.")

    return _CONVERTERS[fmt](entries)
