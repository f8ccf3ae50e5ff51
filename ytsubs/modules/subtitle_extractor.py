"""
YTSubs 자막 추출 모듈
YouTube 워치 페이지를 스크래핑하여 자막 트랙을 고르고 timedtext XML을 가져옵니다.

아키텍처 (앞 단계가 실패하면 다음 단계로 넘어감):
1. watch_page - 워치 페이지의 ytInitialPlayerResponse에서 captionTracks 사용
2. innertube  - youtubei/v1/player (ANDROID 클라이언트)로 captionTracks 재요청
3. timedtext  - /api/timedtext 엔드포인트 직접 호출
4. yt_dlp     - yt-dlp로 VTT 자막을 내려받아 transcript XML로 변환
"""

import os
import re
import html
import json
import shutil
import logging
import tempfile
import subprocess
from dataclasses import dataclass
from typing import Optional, Callable
from pathlib import Path

from config import get_settings
from ytsubs.models.subtitle import (
    SubtitleType,
    SubtitleFormat,
    CaptionTrack,
    VideoInfo,
    SubtitleData,
)
from ytsubs.modules.cache import CachedPage, PlayerResponseCache, get_cache
from ytsubs.modules.youtube_client import YouTubeClient, YouTubeRequestError
from ytsubs.utils.parsers import (
    extract_video_id,
    parse_vtt_content,
    merge_duplicate_segments,
    sanitize_filename,
)
from ytsubs.utils.timedtext import (
    SubtitleParseError,
    parse_timedtext_xml,
    load_entries,
    entries_to_transcript_xml,
    json3_to_transcript_xml,
)
from ytsubs.utils.formatters import convert_entries


settings = get_settings()

logger = logging.getLogger(__name__)


class SubtitleExtractionError(Exception):
    """자막 추출 중 발생하는 예외"""
    status_code = 400


class InvalidVideoError(SubtitleExtractionError):
    """유효하지 않은 URL 또는 Video ID"""
    status_code = 400


class NoCaptionsError(SubtitleExtractionError):
    """영상에 사용할 수 있는 자막이 없음"""
    status_code = 404


class UpstreamError(SubtitleExtractionError):
    """YouTube 응답을 받지 못했거나 해석할 수 없음"""
    status_code = 502


@dataclass
class CaptionPayload:
    """가져온 자막 원문과 출처"""
    xml: str
    source: str
    language: str
    track: Optional[CaptionTrack] = None


# ===== 워치 페이지 파싱 =====

_PLAYER_RESPONSE_START = re.compile(r"ytInitialPlayerResponse\s*=\s*\{")
_PLAYER_RESPONSE_LAZY = re.compile(r"ytInitialPlayerResponse\s*=\s*({.+?});")
_META_TITLE = re.compile(r'<meta\s+name="title"\s+content="([^"]+)"')
_DOCUMENT_TITLE = re.compile(r"<title>([^<]+)</title>")
_INNERTUBE_API_KEY = re.compile(r'"INNERTUBE_API_KEY"\s*:\s*"([^"]+)"')
_VISITOR_DATA = re.compile(r'"visitorData"\s*:\s*"([^"]+)"')

INNERTUBE_CLIENT = {
    "clientName": "ANDROID",
    "clientVersion": "19.01.33",
    "gl": "US",
}


def extract_player_response(page_html: str) -> Optional[dict]:
    """
    워치 페이지 HTML에서 ytInitialPlayerResponse JSON을 추출합니다.

    JSON 디코더로 여는 중괄호부터 객체 끝까지 읽고,
    실패하면 첫 '};'까지 잘라 다시 시도합니다.
    """
    if not page_html:
        return None

    match = _PLAYER_RESPONSE_START.search(page_html)
    if match is None:
        return None

    try:
        data, _ = json.JSONDecoder().raw_decode(page_html, match.end() - 1)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        logger.debug("[SubtitleExtractor] raw_decode 실패, 정규식으로 재시도")

    lazy = _PLAYER_RESPONSE_LAZY.search(page_html)
    if lazy:
        try:
            data = json.loads(lazy.group(1))
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError as e:
            logger.warning("[SubtitleExtractor] ytInitialPlayerResponse 파싱 실패: %s", e)

    return None


def extract_title(page_html: str, player_response: Optional[dict]) -> tuple[Optional[str], Optional[str]]:
    """
    영상 제목과 제목을 찾은 위치를 반환합니다.
    순서: videoDetails.title → <meta name="title"> → <title>
    """
    if player_response:
        title = (player_response.get("videoDetails") or {}).get("title")
        if title:
            return title, "json_data"

    if page_html:
        match = _META_TITLE.search(page_html)
        if match:
            return html.unescape(match.group(1)), "meta_tag"

        match = _DOCUMENT_TITLE.search(page_html)
        if match:
            title = html.unescape(match.group(1)).replace(" - YouTube", "").strip()
            if title and title != "YouTube":
                return title, "document_title"

    return None, None


def caption_tracks_from_player(player_response: Optional[dict]) -> list[CaptionTrack]:
    """플레이어 응답에서 자막 트랙 목록을 꺼냅니다."""
    if not player_response:
        return []
    renderer = (player_response.get("captions") or {}).get("playerCaptionsTracklistRenderer") or {}
    return [
        CaptionTrack.from_player_track(track)
        for track in renderer.get("captionTracks") or []
        if track.get("baseUrl")
    ]


def select_caption_track(
    tracks: list[CaptionTrack],
    subtitle_type: SubtitleType,
    language: str = "en",
) -> CaptionTrack:
    """
    언어와 자막 유형이 모두 일치하는 트랙을 고릅니다.
    없으면 첫 번째 트랙을 사용합니다.

    Raises:
        NoCaptionsError: 트랙이 하나도 없는 경우
    """
    if not tracks:
        raise NoCaptionsError("이 영상에는 사용할 수 있는 자막이 없습니다.")

    subtitle_type = SubtitleType(subtitle_type)
    for track in tracks:
        if track.language_code == language and track.subtitle_type == subtitle_type:
            return track

    fallback = tracks[0]
    logger.info(
        "[SubtitleExtractor] '%s' %s 자막이 없어 대체 트랙 사용: %s (%s)",
        language, subtitle_type.value, fallback.language_code, fallback.subtitle_type.value,
    )
    return fallback


class _WatchPageOnce:
    """fetch_subtitles 한 번 동안 워치 페이지를 최대 한 번만 요청합니다. 실패도 기억합니다."""

    def __init__(self, load: Callable[[], CachedPage]):
        self._load = load
        self._page: Optional[CachedPage] = None
        self._error: Optional[YouTubeRequestError] = None

    def __call__(self) -> CachedPage:
        if self._error is not None:
            raise self._error
        if self._page is None:
            try:
                self._page = self._load()
            except YouTubeRequestError as e:
                self._error = e
                raise
        return self._page


class SubtitleExtractor:
    """
    YouTube 자막 추출기 클래스

    watch_page → innertube → timedtext → yt_dlp 순서로 시도하며,
    각 단계의 실패는 로그로 남기고 다음 단계로 넘어갑니다.
    """

    def __init__(
        self,
        client: Optional[YouTubeClient] = None,
        cache: Optional[PlayerResponseCache] = None,
        temp_dir: Optional[str] = None,
        enable_innertube: Optional[bool] = None,
        enable_timedtext: Optional[bool] = None,
        enable_ytdlp: Optional[bool] = None,
    ):
        self.client = client or YouTubeClient()
        self.cache = cache if cache is not None else get_cache()
        self.temp_dir = temp_dir or settings.TEMP_DIR
        self.default_language = settings.DEFAULT_LANGUAGE
        self.enable_innertube = (
            settings.ENABLE_INNERTUBE_FALLBACK if enable_innertube is None else enable_innertube
        )
        self.enable_timedtext = (
            settings.ENABLE_TIMEDTEXT_FALLBACK if enable_timedtext is None else enable_timedtext
        )
        self.enable_ytdlp = settings.ENABLE_YTDLP_FALLBACK if enable_ytdlp is None else enable_ytdlp

    # ==========================================
    # 공통
    # ==========================================

    def resolve_video_id(self, video: Optional[str]) -> str:
        video_id = extract_video_id(video)
        if not video_id:
            raise InvalidVideoError(f"유효하지 않은 YouTube URL 또는 Video ID: {video}")
        return video_id

    def _load_watch_page(self, video_id: str) -> CachedPage:
        """워치 페이지를 가져옵니다 (캐시 우선)."""
        cached = self.cache.get(video_id)
        if cached is not None:
            return cached

        page_html = self.client.fetch_text(self.client.watch_url(video_id))
        page = CachedPage(
            video_id=video_id,
            html=page_html,
            player_response=extract_player_response(page_html),
        )
        if page.player_response is not None:
            self.cache.set(video_id, page)
        return page

    # ==========================================
    # 영상 정보
    # ==========================================

    def get_video_info(self, video: str) -> VideoInfo:
        """
        영상 제목을 가져옵니다.
        워치 페이지 → oEmbed → 기본값(Video_{id}) 순서로 시도하며
        네트워크 오류로 예외를 던지지 않습니다.
        """
        video_id = self.resolve_video_id(video)

        try:
            page = self._load_watch_page(video_id)
            title, source = extract_title(page.html, page.player_response)
            if title:
                logger.info("[SubtitleExtractor] 제목 발견 (%s): %s", source, title)
                return VideoInfo(video_id=video_id, title=title, source=source)
        except YouTubeRequestError as e:
            logger.warning("[SubtitleExtractor] 워치 페이지 요청 실패: %s", e)

        try:
            data = self.client.fetch_json(self.client.oembed_url(video_id))
            if isinstance(data, dict) and data.get("title"):
                return VideoInfo(video_id=video_id, title=data["title"], source="oembed_api")
        except YouTubeRequestError as e:
            logger.warning("[SubtitleExtractor] oEmbed 요청 실패: %s", e)

        return VideoInfo(video_id=video_id, title=f"Video_{video_id}", source="default")

    # ==========================================
    # 자막 트랙
    # ==========================================

    def _innertube_player(self, video_id: str, page: CachedPage, language: str) -> dict:
        api_key_match = _INNERTUBE_API_KEY.search(page.html or "")
        if not api_key_match:
            raise UpstreamError("INNERTUBE_API_KEY를 찾을 수 없습니다.")

        visitor = _VISITOR_DATA.search(page.html or "")
        client_context = dict(INNERTUBE_CLIENT, hl=language)
        if visitor:
            client_context["visitorData"] = visitor.group(1)

        payload = {"context": {"client": client_context}, "videoId": video_id}
        data = self.client.post_json(self.client.player_url(api_key_match.group(1)), payload)
        if not isinstance(data, dict):
            raise UpstreamError("youtubei 플레이어 응답 형식이 올바르지 않습니다.")
        return data

    def list_caption_tracks(self, video: str) -> list[CaptionTrack]:
        """사용 가능한 자막 트랙 목록을 조회합니다."""
        video_id = self.resolve_video_id(video)

        try:
            page = self._load_watch_page(video_id)
        except YouTubeRequestError as e:
            raise UpstreamError(f"영상 페이지를 가져올 수 없습니다: {e}")

        tracks = caption_tracks_from_player(page.player_response)
        if not tracks and self.enable_innertube:
            try:
                data = self._innertube_player(video_id, page, self.default_language)
                tracks = caption_tracks_from_player(data)
            except (YouTubeRequestError, UpstreamError) as e:
                logger.warning("[SubtitleExtractor] innertube 트랙 조회 실패: %s", e)

        for index, track in enumerate(tracks):
            logger.debug(
                "[SubtitleExtractor] Track %d: lang=%s kind=%s name=%s",
                index, track.language_code, track.kind, track.name,
            )
        return tracks

    def _download_track(self, track: CaptionTrack) -> str:
        text = self.client.fetch_text(self.client.absolute_url(track.base_url))
        if not text.strip():
            raise UpstreamError("자막 응답이 비어 있습니다.")
        return json3_to_transcript_xml(text)

    # ==========================================
    # 자막 가져오기 전략
    # ==========================================

    def _from_watch_page(
        self, video_id: str, subtitle_type: SubtitleType, language: str, load_page: Callable[[], CachedPage],
    ) -> CaptionPayload:
        page = load_page()
        if page.player_response is None:
            raise UpstreamError("ytInitialPlayerResponse를 찾을 수 없습니다.")

        tracks = caption_tracks_from_player(page.player_response)
        logger.info("[SubtitleExtractor] 자막 트랙 %d개 발견", len(tracks))
        track = select_caption_track(tracks, subtitle_type, language)
        return CaptionPayload(
            xml=self._download_track(track),
            source="watch_page",
            language=track.language_code,
            track=track,
        )

    def _from_innertube(
        self, video_id: str, subtitle_type: SubtitleType, language: str, load_page: Callable[[], CachedPage],
    ) -> CaptionPayload:
        page = load_page()
        data = self._innertube_player(video_id, page, language)
        track = select_caption_track(caption_tracks_from_player(data), subtitle_type, language)
        return CaptionPayload(
            xml=self._download_track(track),
            source="innertube",
            language=track.language_code,
            track=track,
        )

    def _from_timedtext(
        self, video_id: str, subtitle_type: SubtitleType, language: str, load_page: Optional[Callable] = None,
    ) -> CaptionPayload:
        track_type = "asr" if subtitle_type == SubtitleType.AUTO else "track"
        data = self.client.fetch_text(self.client.timedtext_url(video_id, track_type, language))
        if not data.strip():
            raise NoCaptionsError("timedtext 응답이 비어 있습니다.")

        xml = json3_to_transcript_xml(data)
        if not parse_timedtext_xml(xml):
            raise NoCaptionsError("timedtext 응답에 자막 항목이 없습니다.")
        return CaptionPayload(xml=xml, source="timedtext", language=language)

    def _from_ytdlp(
        self, video_id: str, subtitle_type: SubtitleType, language: str, load_page: Optional[Callable] = None,
    ) -> CaptionPayload:
        work_dir = self._make_work_dir()
        try:
            args = [
                "--skip-download",
                "--write-auto-sub" if subtitle_type == SubtitleType.AUTO else "--write-sub",
                "--sub-lang", language,
                "--sub-format", "vtt",
                "-o", os.path.join(work_dir, f"{video_id}.%(ext)s"),
                self.client.watch_url(video_id),
            ]
            result = self._run_ytdlp(args)
            if result.returncode != 0:
                raise UpstreamError(f"yt-dlp 자막 다운로드 실패: {result.stderr.strip()}")

            vtt_files = sorted(Path(work_dir).glob(f"{video_id}*.vtt"))
            if not vtt_files:
                raise NoCaptionsError(f"yt-dlp가 '{language}' 자막을 찾지 못했습니다.")

            entries = merge_duplicate_segments(
                parse_vtt_content(vtt_files[0].read_text(encoding="utf-8"))
            )
            if not entries:
                raise NoCaptionsError("yt-dlp 자막 파일이 비어 있습니다.")

            return CaptionPayload(
                xml=entries_to_transcript_xml(entries),
                source="yt_dlp",
                language=language,
            )
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

    def _make_work_dir(self) -> str:
        Path(self.temp_dir).mkdir(parents=True, exist_ok=True)
        return tempfile.mkdtemp(prefix="ytsubs-", dir=self.temp_dir)

    def _run_ytdlp(self, args: list[str]) -> subprocess.CompletedProcess:
        """yt-dlp 명령을 실행합니다."""
        try:
            return subprocess.run(
                ["yt-dlp"] + args,
                capture_output=True,
                text=True,
                timeout=settings.YTDLP_TIMEOUT,
            )
        except subprocess.TimeoutExpired:
            raise UpstreamError("yt-dlp 명령 실행 타임아웃")
        except FileNotFoundError:
            raise UpstreamError(
                "yt-dlp가 설치되어 있지 않습니다. 'pip install yt-dlp'로 설치해주세요."
            )

    def is_ytdlp_available(self) -> bool:
        return shutil.which("yt-dlp") is not None

    def _strategies(self) -> list[tuple[str, Callable[..., CaptionPayload]]]:
        strategies = [("watch_page", self._from_watch_page)]
        if self.enable_innertube:
            strategies.append(("innertube", self._from_innertube))
        if self.enable_timedtext:
            strategies.append(("timedtext", self._from_timedtext))
        if self.enable_ytdlp:
            strategies.append(("yt_dlp", self._from_ytdlp))
        return strategies

    # ==========================================
    # 공개 API
    # ==========================================

    def fetch_subtitles(
        self,
        video: str,
        subtitle_type: SubtitleType = SubtitleType.MANUAL,
        language: Optional[str] = None,
    ) -> CaptionPayload:
        """
        자막 원문(timedtext XML)을 가져옵니다.

        Args:
            video: YouTube 영상 URL 또는 ID
            subtitle_type: auto (자동 자막) 또는 manual (수동 자막)
            language: 자막 언어 코드 (기본값: DEFAULT_LANGUAGE)

        Raises:
            InvalidVideoError: URL/ID가 올바르지 않은 경우
            NoCaptionsError: 어느 경로에서도 자막 트랙을 찾지 못한 경우
            UpstreamError: YouTube 요청 또는 응답 해석이 모두 실패한 경우
        """
        video_id = self.resolve_video_id(video)
        subtitle_type = SubtitleType(subtitle_type)
        language = language or self.default_language

        load_page = _WatchPageOnce(lambda: self._load_watch_page(video_id))
        no_captions: Optional[NoCaptionsError] = None
        first_error: Optional[Exception] = None

        for name, strategy in self._strategies():
            try:
                payload = strategy(video_id, subtitle_type, language, load_page)
                logger.info("[SubtitleExtractor] 자막 가져오기 성공 (%s): %s", name, video_id)
                return payload
            except NoCaptionsError as e:
                logger.warning("[SubtitleExtractor] %s: 자막 없음 - %s", name, e)
                no_captions = no_captions or e
            except (YouTubeRequestError, SubtitleParseError, SubtitleExtractionError) as e:
                logger.warning("[SubtitleExtractor] %s 실패: %s", name, e)
                first_error = first_error or e

        if no_captions is not None:
            raise no_captions
        raise UpstreamError(f"자막을 가져오지 못했습니다: {first_error}")

    def extract_subtitle(
        self,
        video: str,
        subtitle_type: SubtitleType = SubtitleType.MANUAL,
        language: Optional[str] = None,
    ) -> SubtitleData:
        """자막을 가져와 파싱/정제한 SubtitleData를 반환합니다."""
        payload = self.fetch_subtitles(video, subtitle_type, language)
        info = self.get_video_info(video)

        return SubtitleData(
            video_id=info.video_id,
            title=info.title,
            language=payload.language,
            subtitle_type=payload.track.subtitle_type if payload.track else SubtitleType(subtitle_type),
            source=payload.source,
            entries=load_entries(payload.xml),
        )

    def render_subtitle(
        self,
        video: str,
        subtitle_type: SubtitleType = SubtitleType.MANUAL,
        fmt: SubtitleFormat = SubtitleFormat.VTT,
        language: Optional[str] = None,
    ) -> tuple[str, str]:
        """
        다운로드용 자막 파일을 만듭니다.

        Returns:
            (파일 이름, 파일 내용) - 파일 이름은 '{제목}_subtitles.{포맷}'
        """
        fmt = SubtitleFormat(fmt)
        data = self.extract_subtitle(video, subtitle_type, language)
        content = convert_entries(data.entries, fmt)
        filename = f"{sanitize_filename(data.title or data.video_id)}_subtitles.{fmt.value}"
        return filename, content


# 편의 함수
_default_extractor: Optional[SubtitleExtractor] = None


def get_extractor() -> SubtitleExtractor:
    """기본 SubtitleExtractor 인스턴스를 반환합니다."""
    global _default_extractor
    if _default_extractor is None:
        _default_extractor = SubtitleExtractor()
    return _default_extractor


def extract_subtitle(
    video: str,
    subtitle_type: SubtitleType = SubtitleType.MANUAL,
    language: Optional[str] = None,
) -> SubtitleData:
    """YouTube 영상에서 자막을 추출하는 편의 함수입니다."""
    return get_extractor().extract_subtitle(video, subtitle_type, language)


def list_tracks(video: str) -> list[CaptionTrack]:
    """사용 가능한 자막 트랙 목록을 조회하는 편의 함수입니다."""
    return get_extractor().list_caption_tracks(video)
