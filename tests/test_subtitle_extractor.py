"""
SubtitleExtractor 테스트
YouTube 응답을 URL별로 흉내 내어 스크래핑 파이프라인과 폴백 순서를 검증합니다.
"""

import json
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
import requests

from ytsubs.models.subtitle import SubtitleType, SubtitleFormat
from ytsubs.modules.cache import PlayerResponseCache
from ytsubs.modules.youtube_client import YouTubeClient
from ytsubs.modules.subtitle_extractor import (
    SubtitleExtractor,
    InvalidVideoError,
    NoCaptionsError,
    UpstreamError,
    extract_player_response,
    extract_title,
    caption_tracks_from_player,
    select_caption_track,
)
from tests.conftest import (
    VIDEO_ID,
    TRANSCRIPT_XML,
    make_player_response,
    make_track,
    make_watch_page,
    make_response,
)


WATCH_URL = f"https://www.youtube.com/watch?v={VIDEO_ID}"


class FakeYouTube:
    """URL 접두사별로 응답을 돌려주는 가짜 YouTube"""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.calls = []

    def __call__(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        for prefix, result in self.routes.items():
            if url.startswith(prefix):
                if isinstance(result, Exception):
                    raise result
                if isinstance(result, int):
                    return make_response(status_code=result, url=url)
                return make_response(text=result, url=url)
        return make_response(status_code=404, url=url)

    def urls(self):
        return [url for _, url, _ in self.calls]


@pytest.fixture
def fake():
    return FakeYouTube()


@pytest.fixture
def extractor(fake, tmp_path):
    session = requests.Session()
    client = YouTubeClient(
        session=session,
        base_url="https://www.youtube.com",
        proxy_url="",
        max_retries=0,
        retry_delay=0,
    )
    with patch.object(session, "request", side_effect=fake):
        yield SubtitleExtractor(
            client=client,
            cache=PlayerResponseCache(),
            temp_dir=str(tmp_path),
            enable_innertube=True,
            enable_timedtext=True,
            enable_ytdlp=False,
        )


class TestPageParsing:
    """워치 페이지 파싱 함수 테스트"""

    def test_extract_player_response(self):
        player = make_player_response(tracks=[make_track()])
        page = make_watch_page(player)

        assert extract_player_response(page) == player

    def test_extract_player_response_with_braces_in_strings(self):
        """문자열 안의 '};'에 속지 않음"""
        player = make_player_response(title="weird }; title")
        page = make_watch_page(player)

        assert extract_player_response(page)["videoDetails"]["title"] == "weird }; title"

    def test_extract_player_response_missing(self):
        assert extract_player_response("<html></html>") is None
        assert extract_player_response("") is None

    def test_extract_title_order(self):
        player = make_player_response()
        page = make_watch_page(player)

        assert extract_title(page, player) == ("Never Gonna Give You Up", "json_data")
        assert extract_title(page, None) == ("Meta Title", "meta_tag")

        no_meta = "<html><head><title>Doc &amp; Title - YouTube</title></head></html>"
        assert extract_title(no_meta, None) == ("Doc & Title", "document_title")
        assert extract_title("<html></html>", None) == (None, None)

    def test_caption_tracks_skip_missing_base_url(self):
        player = make_player_response(tracks=[make_track(), {"languageCode": "fr"}])

        tracks = caption_tracks_from_player(player)

        assert [t.language_code for t in tracks] == ["en"]
        assert caption_tracks_from_player(make_player_response()) == []


class TestSelectCaptionTrack:
    """자막 트랙 선택 테스트"""

    @pytest.fixture
    def tracks(self):
        player = make_player_response(tracks=[
            make_track("ko"),
            make_track("en", kind="asr", name="English (auto)"),
            make_track("en"),
        ])
        return caption_tracks_from_player(player)

    def test_manual_match(self, tracks):
        track = select_caption_track(tracks, SubtitleType.MANUAL, "en")
        assert track.language_code == "en" and not track.is_auto

    def test_auto_match(self, tracks):
        track = select_caption_track(tracks, SubtitleType.AUTO, "en")
        assert track.language_code == "en" and track.is_auto

    def test_language_parameter(self, tracks):
        assert select_caption_track(tracks, "manual", "ko").language_code == "ko"

    def test_fallback_to_first_track(self, tracks):
        """일치하는 트랙이 없으면 첫 번째 트랙"""
        assert select_caption_track(tracks, SubtitleType.AUTO, "ja").language_code == "ko"

    def test_no_tracks(self):
        with pytest.raises(NoCaptionsError):
            select_caption_track([], SubtitleType.MANUAL)


class TestVideoInfo:
    """get_video_info 테스트"""

    def test_title_from_player_response(self, extractor, fake):
        fake.routes[WATCH_URL] = make_watch_page(make_player_response())

        info = extractor.get_video_info(f"https://youtu.be/{VIDEO_ID}")

        assert info.video_id == VIDEO_ID
        assert info.title == "Never Gonna Give You Up"
        assert info.source == "json_data"

    def test_oembed_fallback(self, extractor, fake):
        fake.routes[WATCH_URL] = 500
        fake.routes["https://www.youtube.com/oembed"] = json.dumps({"title": "From oEmbed"})

        info = extractor.get_video_info(VIDEO_ID)

        assert info.title == "From oEmbed"
        assert info.source == "oembed_api"

    def test_default_title(self, extractor, fake):
        fake.routes[WATCH_URL] = requests.ConnectionError("offline")
        fake.routes["https://www.youtube.com/oembed"] = 404

        info = extractor.get_video_info(VIDEO_ID)

        assert info.title == f"Video_{VIDEO_ID}"
        assert info.source == "default"

    def test_invalid_video(self, extractor):
        with pytest.raises(InvalidVideoError):
            extractor.get_video_info("https://example.com/nothing")

    def test_watch_page_cached(self, extractor, fake):
        fake.routes[WATCH_URL] = make_watch_page(make_player_response())

        extractor.get_video_info(VIDEO_ID)
        extractor.get_video_info(VIDEO_ID)

        assert fake.urls().count(WATCH_URL) == 1


class TestFetchSubtitles:
    """자막 가져오기 전략 테스트"""

    def test_watch_page_strategy(self, extractor, fake):
        player = make_player_response(tracks=[
            make_track("en", kind="asr", base_url="/api/timedtext?v=x&kind=asr"),
            make_track("en", base_url="/api/timedtext?v=x&manual=1"),
        ])
        fake.routes[WATCH_URL] = make_watch_page(player)
        fake.routes["https://www.youtube.com/api/timedtext?v=x&manual=1"] = TRANSCRIPT_XML

        payload = extractor.fetch_subtitles(VIDEO_ID, SubtitleType.MANUAL, "en")

        assert payload.source == "watch_page"
        assert payload.xml == TRANSCRIPT_XML
        assert payload.track.subtitle_type == SubtitleType.MANUAL
        assert payload.language == "en"

    def test_innertube_when_page_has_no_player_response(self, extractor, fake):
        fake.routes[WATCH_URL] = make_watch_page(None)
        fake.routes["https://www.youtube.com/youtubei/v1/player"] = json.dumps(
            make_player_response(tracks=[make_track("en", base_url="https://www.youtube.com/api/timedtext?it=1")])
        )
        fake.routes["https://www.youtube.com/api/timedtext?it=1"] = TRANSCRIPT_XML

        payload = extractor.fetch_subtitles(VIDEO_ID, SubtitleType.MANUAL)

        assert payload.source == "innertube"
        method, url, kwargs = next(c for c in fake.calls if "youtubei" in c[1])
        assert method == "POST"
        assert url.endswith("key=test-key")
        assert kwargs["json"]["videoId"] == VIDEO_ID
        assert kwargs["json"]["context"]["client"]["clientName"] == "ANDROID"
        assert kwargs["json"]["context"]["client"]["visitorData"] == "visitor-123"

    def test_timedtext_fallback_converts_json3(self, extractor, fake):
        fake.routes[WATCH_URL] = 503
        fake.routes["https://www.youtube.com/api/timedtext"] = json.dumps(
            {"events": [{"tStartMs": 1000, "dDurationMs": 2000, "segs": [{"utf8": "json caption"}]}]}
        )

        payload = extractor.fetch_subtitles(VIDEO_ID, SubtitleType.AUTO, "en")

        assert payload.source == "timedtext"
        assert payload.track is None
        assert '<text start="1" dur="2">json caption</text>' in payload.xml
        timedtext_url = next(u for u in fake.urls() if "/api/timedtext" in u)
        assert "type=asr" in timedtext_url and "lang=en" in timedtext_url

    def test_no_captions_anywhere(self, extractor, fake):
        fake.routes[WATCH_URL] = make_watch_page(make_player_response(tracks=[]))
        fake.routes["https://www.youtube.com/youtubei/v1/player"] = json.dumps(make_player_response())
        fake.routes["https://www.youtube.com/api/timedtext"] = ""

        with pytest.raises(NoCaptionsError):
            extractor.fetch_subtitles(VIDEO_ID, SubtitleType.MANUAL)

    def test_all_requests_fail(self, extractor, fake):
        fake.routes["https://www.youtube.com/"] = 500

        with pytest.raises(UpstreamError):
            extractor.fetch_subtitles(VIDEO_ID, SubtitleType.MANUAL)

    def test_failed_watch_page_requested_once(self, extractor, fake):
        """워치 페이지 요청이 실패하면 innertube 단계에서 다시 요청하지 않음"""
        extractor.enable_timedtext = False
        fake.routes["https://www.youtube.com/"] = requests.ConnectionError("offline")

        with pytest.raises(UpstreamError):
            extractor.fetch_subtitles(VIDEO_ID, SubtitleType.MANUAL)

        assert fake.urls().count(WATCH_URL) == 1

    def test_watch_page_shared_without_player_response(self, extractor, fake):
        """플레이어 응답이 없는 페이지(캐시 안 됨)도 innertube 단계에서 재사용"""
        fake.routes[WATCH_URL] = make_watch_page(None)
        fake.routes["https://www.youtube.com/youtubei/v1/player"] = json.dumps(make_player_response())
        fake.routes["https://www.youtube.com/api/timedtext"] = ""

        with pytest.raises(NoCaptionsError):
            extractor.fetch_subtitles(VIDEO_ID, SubtitleType.MANUAL)

        assert fake.urls().count(WATCH_URL) == 1


    def test_invalid_video(self, extractor):
        with pytest.raises(InvalidVideoError):
            extractor.fetch_subtitles("not a video", SubtitleType.MANUAL)


class TestYtDlpFallback:
    """yt-dlp 폴백 테스트"""

    VTT = "WEBVTT\n\n00:00:01.000 --> 00:00:02.000\nfrom yt-dlp\n\n00:00:02.000 --> 00:00:03.000\nfrom yt-dlp\n"

    def _fake_run(self, vtt_text=None, returncode=0):
        def run(cmd, **kwargs):
            if vtt_text is not None:
                template = cmd[cmd.index("-o") + 1]
                Path(template.replace("%(ext)s", "en.vtt")).write_text(vtt_text, encoding="utf-8")
            return subprocess.CompletedProcess(cmd, returncode, stdout="", stderr="err")
        return run

    def test_ytdlp_last_resort(self, extractor, fake):
        extractor.enable_ytdlp = True
        fake.routes["https://www.youtube.com/"] = 500

        with patch("ytsubs.modules.subtitle_extractor.subprocess.run", side_effect=self._fake_run(self.VTT)) as run:
            payload = extractor.fetch_subtitles(VIDEO_ID, SubtitleType.AUTO, "en")

        assert payload.source == "yt_dlp"
        cmd = run.call_args.args[0]
        assert cmd[0] == "yt-dlp"
        assert "--write-auto-sub" in cmd
        # 중복 큐 병합 후 하나의 항목
        assert payload.xml.count("<text ") == 1
        assert '<text start="1" dur="2">from yt-dlp</text>' in payload.xml

    def test_ytdlp_no_file(self, extractor, fake):
        extractor.enable_ytdlp = True
        fake.routes["https://www.youtube.com/"] = 500

        with patch("ytsubs.modules.subtitle_extractor.subprocess.run", side_effect=self._fake_run(None)):
            with pytest.raises(NoCaptionsError):
                extractor.fetch_subtitles(VIDEO_ID, SubtitleType.MANUAL, "en")

    def test_ytdlp_not_installed(self, extractor, fake):
        extractor.enable_ytdlp = True
        fake.routes["https://www.youtube.com/"] = 500

        with patch("ytsubs.modules.subtitle_extractor.subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(UpstreamError):
                extractor.fetch_subtitles(VIDEO_ID, SubtitleType.MANUAL, "en")


class TestExtractAndRender:
    """extract_subtitle / render_subtitle 테스트"""

    @pytest.fixture(autouse=True)
    def routes(self, fake):
        player = make_player_response(
            tracks=[make_track("en", base_url="https://www.youtube.com/api/timedtext?v=x")],
            title='Title: with "bad" chars?',
        )
        fake.routes[WATCH_URL] = make_watch_page(player)
        fake.routes["https://www.youtube.com/api/timedtext?v=x"] = TRANSCRIPT_XML

    def test_extract_subtitle(self, extractor):
        data = extractor.extract_subtitle(VIDEO_ID, SubtitleType.MANUAL)

        assert data.title == 'Title: with "bad" chars?'
        assert data.source == "watch_page"
        assert [e.text for e in data.entries] == ["Hello & welcome", "It's a test"]

    def test_render_srt(self, extractor):
        filename, content = extractor.render_subtitle(VIDEO_ID, SubtitleType.MANUAL, SubtitleFormat.SRT)

        assert filename == "Title_ with _bad_ chars__subtitles.srt"
        assert content.startswith("1\n00:00:00,500 --> 00:00:02,750\nHello & welcome\n\n")

    def test_render_txt(self, extractor):
        _, content = extractor.render_subtitle(VIDEO_ID, "manual", "txt")

        assert content == "Hello & welcome\nIt's a test\n"
