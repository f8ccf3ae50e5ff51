"""
YouTube timedtext 자막 파싱 모듈

지원 형식:
- srv1 ("transcript"): <transcript><text start="1.2" dur="3.4">...</text></transcript>
- srv3 ("timedtext"):  <timedtext format="3"><body><p t="1200" d="3400">...</p></body></timedtext>
- json3: {"events": [{"tStartMs": 1200, "dDurationMs": 3400, "segs": [{"utf8": "..."}]}]}
"""

import json
import math
import xml.etree.ElementTree as ET
from typing import Any, Union

from ytsubs.models.subtitle import SubtitleEntry
from ytsubs.utils.parsers import clean_subtitle_text


XML_DECLARATION = '<?xml version="1.0" encoding="utf-8" ?>'


class SubtitleParseError(ValueError):
    """자막 데이터 형식이 올바르지 않을 때 발생하는 예외"""
    status_code = 400


def _to_float(value: Any, scale: float = 1.0) -> float:
    """시간 값을 초로 바꿉니다. inf, nan 같은 유한하지 않은 값은 거부합니다."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise SubtitleParseError(f"잘못된 시간 값입니다: {value}")
    if not math.isfinite(number):
        raise SubtitleParseError(f"잘못된 시간 값입니다: {value}")
    return max(0.0, number / scale)


def parse_timedtext_xml(xml_data: str) -> list[SubtitleEntry]:
    """
    timedtext XML을 SubtitleEntry 리스트로 변환합니다.
    텍스트는 원문 그대로 두며, 정제는 process_entries에서 수행합니다.

    Raises:
        SubtitleParseError: XML이 아니거나 알 수 없는 루트 요소인 경우
    """
    if not xml_data or not xml_data.strip():
        raise SubtitleParseError("자막 데이터가 비어 있습니다.")

    try:
        root = ET.fromstring(xml_data.lstrip("\ufeff").strip())
    except ET.ParseError as e:
        raise SubtitleParseError(f"자막 XML 파싱 실패: {e}")

    entries: list[SubtitleEntry] = []

    try:
        if root.tag == "transcript":
            for node in root.findall("text"):
                entries.append(SubtitleEntry(
                    start=_to_float(node.attrib["start"]),
                    duration=_to_float(node.get("dur", "0")),
                    text="".join(node.itertext()),
                ))
        elif root.tag == "timedtext":
            body = root.find("body")
            nodes = body.findall("p") if body is not None else root.iter("p")
            for node in nodes:
                entries.append(SubtitleEntry(
                    start=_to_float(node.attrib["t"], 1000),
                    duration=_to_float(node.get("d", "0"), 1000),
                    text="".join(node.itertext()),
                ))
        else:
            raise SubtitleParseError(f"알 수 없는 자막 형식입니다: <{root.tag}>")
    except SubtitleParseError:
        raise
    except (KeyError, ValueError) as e:
        raise SubtitleParseError(f"잘못된 자막 항목: {e}")

    return entries


def process_entries(entries: list[SubtitleEntry]) -> list[SubtitleEntry]:
    """빈 자막을 제거하고 텍스트를 정제한 뒤 시작 시간 순으로 정렬합니다."""
    processed = []
    for entry in entries:
        if not entry.text.strip():
            continue
        text = clean_subtitle_text(entry.text)
        if text:
            processed.append(entry.model_copy(update={"text": text}))

    return sorted(processed, key=lambda e: e.start)


def _format_seconds(value: float) -> str:
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return text or "0"


def entries_to_transcript_xml(entries: list[SubtitleEntry]) -> str:
    """SubtitleEntry 리스트를 srv1 transcript XML 문자열로 직렬화합니다."""
    root = ET.Element("transcript")
    for entry in entries:
        node = ET.SubElement(root, "text", {
            "start": _format_seconds(entry.start),
            "dur": _format_seconds(entry.duration),
        })
        node.text = entry.text
    return XML_DECLARATION + ET.tostring(root, encoding="unicode")


def json3_to_entries(payload: Union[dict, list]) -> list[SubtitleEntry]:
    """json3 이벤트 목록 또는 {start, dur, text} 배열을 SubtitleEntry로 변환합니다."""
    entries: list[SubtitleEntry] = []

    if isinstance(payload, dict) and "events" in payload:
        for event in payload["events"] or []:
            segs = event.get("segs")
            if not segs or event.get("tStartMs") is None:
                continue
            text = "".join(seg.get("utf8", "") for seg in segs)
            if not text.strip():
                continue
            entries.append(SubtitleEntry(
                start=_to_float(event["tStartMs"], 1000),
                duration=_to_float(event.get("dDurationMs") or 1000, 1000),
                text=text,
            ))
        return entries

    if isinstance(payload, list):
        for item in payload:
            if not isinstance(item, dict) or item.get("start") is None or not item.get("text"):
                continue
            entries.append(SubtitleEntry(
                start=_to_float(item["start"]),
                duration=_to_float(item.get("dur") or 1),
                text=str(item["text"]),
            ))
        return entries

    raise SubtitleParseError("인식할 수 없는 자막 데이터 형식입니다.")


def json3_to_transcript_xml(payload: Union[str, dict, list, Any]) -> str:
    """
    timedtext 응답을 transcript XML로 맞춥니다.
    이미 XML이면 그대로 반환하고, JSON이면 변환합니다.
    """
    if isinstance(payload, str):
        stripped = payload.strip()
        if stripped.startswith("<"):
            return stripped
        try:
            payload = json.loads(stripped)
        except json.JSONDecodeError:
            raise SubtitleParseError("인식할 수 없는 자막 데이터 형식입니다.")

    return entries_to_transcript_xml(json3_to_entries(payload))


def load_entries(xml_data: str) -> list[SubtitleEntry]:
    """timedtext XML을 파싱하고 후처리까지 마친 자막 항목을 반환합니다."""
    return process_entries(parse_timedtext_xml(xml_data))
