"""
timedtext.py 모듈 테스트
srv1 / srv3 / json3 자막 파싱과 후처리를 검증합니다.
"""

import json

import pytest

from ytsubs.models.subtitle import SubtitleEntry
from ytsubs.utils.timedtext import (
    SubtitleParseError,
    parse_timedtext_xml,
    process_entries,
    load_entries,
    entries_to_transcript_xml,
    json3_to_entries,
    json3_to_transcript_xml,
)


class TestParseTimedtextXml:
    """parse_timedtext_xml 함수 테스트"""

    def test_transcript_format(self, transcript_xml):
        entries = parse_timedtext_xml(transcript_xml)

        assert len(entries) == 2
        assert entries[0].start == 0.5
        assert entries[0].duration == 2.25
        # XML 엔티티 한 단계만 풀린 상태 (정제 전)
        assert entries[0].text == "Hello &amp; welcome"

    def test_single_text_node(self):
        """text 노드가 하나여도 목록으로 처리"""
        entries = parse_timedtext_xml('<transcript><text start="1" dur="2">Only</text></transcript>')

        assert len(entries) == 1
        assert entries[0].text == "Only"

    def test_missing_duration(self):
        entries = parse_timedtext_xml('<transcript><text start="4.2">No dur</text></transcript>')

        assert entries[0].duration == 0.0
        assert entries[0].end == 4.2

    def test_srv3_format(self):
        """srv3 (ms 단위, <s> 하위 요소) 테스트"""
        xml = (
            '<?xml version="1.0" encoding="utf-8" ?><timedtext format="3"><body>'
            '<p t="1200" d="3400"><s>Hello</s><s t="500"> there</s></p>'
            '<p t="5000">Bye</p>'
            '</body></timedtext>'
        )
        entries = parse_timedtext_xml(xml)

        assert len(entries) == 2
        assert entries[0].start == 1.2
        assert entries[0].duration == 3.4
        assert entries[0].text == "Hello there"
        assert entries[1].duration == 0.0

    def test_empty_transcript(self):
        assert parse_timedtext_xml("<transcript></transcript>") == []

    def test_malformed_xml(self):
        with pytest.raises(SubtitleParseError):
            parse_timedtext_xml("<transcript><text start='1'>oops")

    def test_html_is_rejected(self):
        """동의 페이지 같은 HTML 응답 거부"""
        with pytest.raises(SubtitleParseError):
            parse_timedtext_xml("<html><body>consent</body></html>")

    def test_empty_input(self):
        with pytest.raises(SubtitleParseError):
            parse_timedtext_xml("   ")

    def test_missing_start(self):
        with pytest.raises(SubtitleParseError):
            parse_timedtext_xml('<transcript><text dur="1">x</text></transcript>')

    @pytest.mark.parametrize("xml", [
        '<transcript><text start="inf" dur="1">x</text></transcript>',
        '<transcript><text start="nan" dur="1">x</text></transcript>',
        '<transcript><text start="1" dur="-inf">x</text></transcript>',
        '<timedtext><body><p t="Infinity" d="1000">x</p></body></timedtext>',
    ])
    def test_non_finite_times(self, xml):
        """유한하지 않은 시간 값 거부"""
        with pytest.raises(SubtitleParseError):
            parse_timedtext_xml(xml)


class TestProcessEntries:
    """process_entries 함수 테스트"""

    def test_filters_cleans_and_sorts(self):
        entries = [
            SubtitleEntry(start=5.0, duration=1.0, text="second &amp;#39;quoted&amp;#39;"),
            SubtitleEntry(start=2.0, duration=1.0, text="   "),
            SubtitleEntry(start=1.0, duration=1.0, text="first\\nline"),
        ]

        processed = process_entries(entries)

        assert [e.start for e in processed] == [1.0, 5.0]
        assert processed[0].text == "first line"
        assert processed[1].text == "second &#39;quoted&#39;"

    def test_stable_for_equal_start(self):
        entries = [
            SubtitleEntry(start=1.0, text="a"),
            SubtitleEntry(start=1.0, text="b"),
        ]
        assert [e.text for e in process_entries(entries)] == ["a", "b"]

    def test_load_entries(self, transcript_xml):
        entries = load_entries(transcript_xml)

        assert [e.text for e in entries] == ["Hello & welcome", "It's a test"]


class TestJson3Conversion:
    """json3 → transcript XML 변환 테스트"""

    def test_events(self):
        payload = {
            "events": [
                {"tStartMs": 0, "dDurationMs": 1500, "segs": [{"utf8": "Hi "}, {"utf8": "all"}]},
                {"tStartMs": 1500, "segs": [{"utf8": "\n"}]},
                {"tStartMs": 2000, "segs": [{"utf8": "no dur"}]},
                {"tStartMs": 3000},
            ]
        }
        entries = json3_to_entries(payload)

        assert len(entries) == 2
        assert entries[0].text == "Hi all"
        assert entries[0].duration == 1.5
        assert entries[1].duration == 1.0

    def test_array_payload(self):
        entries = json3_to_entries([{"start": 1, "dur": 2, "text": "x"}, {"text": "no start"}])

        assert len(entries) == 1
        assert entries[0].start == 1.0

    def test_unknown_payload(self):
        with pytest.raises(SubtitleParseError):
            json3_to_entries({"foo": "bar"})

    def test_non_finite_json_values(self):
        """json 모듈이 허용하는 Infinity/NaN도 거부"""
        with pytest.raises(SubtitleParseError):
            json3_to_transcript_xml('{"events": [{"tStartMs": Infinity, "segs": [{"utf8": "x"}]}]}')
        with pytest.raises(SubtitleParseError):
            json3_to_entries([{"start": "NaN", "text": "x"}])

    def test_non_numeric_time(self):
        with pytest.raises(SubtitleParseError):
            json3_to_entries([{"start": "soon", "text": "x"}])

    def test_xml_passthrough(self, transcript_xml):
        assert json3_to_transcript_xml(transcript_xml) == transcript_xml

    def test_json_string_to_xml(self):
        payload = json.dumps({"events": [{"tStartMs": 2500, "dDurationMs": 1000, "segs": [{"utf8": "A & B"}]}]})

        xml = json3_to_transcript_xml(payload)

        assert xml.startswith('<?xml version="1.0" encoding="utf-8" ?><transcript>')
        assert '<text start="2.5" dur="1">A &amp; B</text>' in xml
        assert parse_timedtext_xml(xml)[0].text == "A & B"

    def test_not_json_or_xml(self):
        with pytest.raises(SubtitleParseError):
            json3_to_transcript_xml("plain text")


class TestEntriesToTranscriptXml:
    """entries_to_transcript_xml 함수 테스트"""

    def test_escapes_and_reparses(self):
        entries = [SubtitleEntry(start=0.0, duration=1.25, text="<b> & \"q\"")]

        xml = entries_to_transcript_xml(entries)

        assert '<text start="0" dur="1.25">' in xml
        assert parse_timedtext_xml(xml) == entries


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
