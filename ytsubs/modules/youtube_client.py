"""
YTSubs YouTube HTTP 클라이언트 모듈

requests.Session 위에 브라우저와 같은 헤더, 재시도, 미러(프록시) 폴백을 얹습니다.

요청 순서:
1. YouTube에 직접 요청 (urllib3 Retry가 연결 오류와 429/5xx 응답을 MAX_RETRIES 만큼 재시도)
2. YOUTUBE_PROXY_URL이 설정되어 있으면 같은 경로를 미러로 재요청
3. 모두 실패하면 최초(직접 요청)의 오류로 YouTubeRequestError 발생
"""

import logging
from typing import Optional, Any
from urllib.parse import urlencode, quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config import get_settings


settings = get_settings()

logger = logging.getLogger(__name__)

YOUTUBE_ORIGIN = "https://www.youtube.com"

RETRY_STATUS_CODES = [429, 500, 502, 503, 504]


class YouTubeRequestError(Exception):
    """YouTube 요청이 모든 재시도/폴백 후에도 실패했을 때 발생하는 예외"""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class YouTubeClient:
    """
    YouTube 요청 전용 HTTP 클라이언트

    워치 페이지, oEmbed, timedtext, youtubei 플레이어 엔드포인트를 호출합니다.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: str = None,
        proxy_url: str = None,
        timeout: float = None,
        max_retries: int = None,
        retry_delay: float = None,
    ):
        self.session = session or requests.Session()
        self.base_url = (base_url or settings.YOUTUBE_BASE_URL).rstrip("/")
        proxy_url = proxy_url if proxy_url is not None else settings.YOUTUBE_PROXY_URL
        self.proxy_url = proxy_url.rstrip("/") if proxy_url else None
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self.max_retries = max_retries if max_retries is not None else settings.MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else settings.RETRY_DELAY

        self.session.headers.update({
            "User-Agent": settings.USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            "Cookie": settings.COOKIE_STRING,
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
        })

        adapter = HTTPAdapter(max_retries=self._build_retry())
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def _build_retry(self) -> Retry:
        """연결 오류와 일시적인 상태 코드만 재시도합니다 (404, 403 등은 즉시 실패)."""
        return Retry(
            total=self.max_retries,
            connect=self.max_retries,
            read=self.max_retries,
            backoff_factor=self.retry_delay,
            status_forcelist=RETRY_STATUS_CODES,
            allowed_methods=["GET", "POST"],
            raise_on_status=False,
        )

    # ==========================================
    # URL 구성
    # ==========================================

    def absolute_url(self, path_or_url: str) -> str:
        """'api/...', '/api/...' 같은 상대 경로를 YouTube 절대 URL로 바꿉니다."""
        if path_or_url.startswith("//"):
            return "https:" + path_or_url
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self.base_url}/{path_or_url.lstrip('/')}"

    def watch_url(self, video_id: str) -> str:
        return f"{self.base_url}/watch?v={video_id}"

    def oembed_url(self, video_id: str) -> str:
        target = quote(f"{YOUTUBE_ORIGIN}/watch?v={video_id}", safe="")
        return f"{self.base_url}/oembed?url={target}&format=json"

    def timedtext_url(self, video_id: str, track_type: str, language: str, fmt: str = "srv1") -> str:
        query = urlencode({"v": video_id, "type": track_type, "lang": language, "fmt": fmt})
        return f"{self.base_url}/api/timedtext?{query}"

    def player_url(self, api_key: str) -> str:
        return f"{self.base_url}/youtubei/v1/player?key={api_key}"

    def _mirror_url(self, url: str) -> Optional[str]:
        if not self.proxy_url:
            return None
        for origin in (self.base_url, YOUTUBE_ORIGIN):
            if url.startswith(origin):
                return self.proxy_url + url[len(origin):]
        return None

    # ==========================================
    # 요청
    # ==========================================

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        """요청을 한 번 보냅니다. 재시도는 세션에 마운트된 HTTPAdapter가 담당합니다."""
        logger.debug("[YouTubeClient] %s %s", method, url)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise YouTubeRequestError(f"YouTube 요청 실패: {e}", url=url, status_code=status)
        except requests.RequestException as e:
            raise YouTubeRequestError(f"YouTube 요청 실패: {e}", url=url)

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self._send(method, url, **kwargs)
        except YouTubeRequestError as direct_error:
            mirror = self._mirror_url(url)
            if mirror is None:
                raise
            logger.info("[YouTubeClient] 직접 요청 실패, 미러 사용: %s", mirror)
            try:
                return self._send(method, mirror, **kwargs)
            except YouTubeRequestError as mirror_error:
                logger.warning("[YouTubeClient] 미러 요청 실패: %s", mirror_error)
                raise direct_error

    def fetch_text(self, url: str) -> str:
        """GET 요청 후 본문 텍스트를 반환합니다."""
        response = self._request("GET", url)
        if not response.encoding or response.encoding.lower() == "iso-8859-1":
            response.encoding = "utf-8"
        return response.text

    def fetch_json(self, url: str) -> Any:
        response = self._request("GET", url)
        try:
            return response.json()
        except ValueError as e:
            raise YouTubeRequestError(f"JSON 응답이 아닙니다: {e}", url=url)

    def post_json(self, url: str, payload: dict) -> Any:
        response = self._request(
            "POST",
            url,
            json=payload,
            headers={"Content-Type": "application/json", "Origin": YOUTUBE_ORIGIN},
        )
        try:
            return response.json()
        except ValueError as e:
            raise YouTubeRequestError(f"JSON 응답이 아닙니다: {e}", url=url)

    def close(self) -> None:
        self.session.close()
