"""
YTSubs Backend 설정 모듈
환경 변수 및 애플리케이션 상수를 관리합니다.
"""

from pydantic_settings import BaseSettings
from typing import Optional
from functools import lru_cache


class Settings(BaseSettings):
    """
    애플리케이션 설정 클래스
    환경 변수에서 값을 로드하며, 기본값을 제공합니다.
    """

    # 애플리케이션 기본 설정
    APP_NAME: str = "YTSubs Backend"
    APP_VERSION: str = "0.3.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 서버 설정
    HOST: str = "127.0.0.1"
    PORT: int = 8000
    CORS_ORIGINS: list[str] = ["*"]

    # YouTube 요청 설정
    YOUTUBE_BASE_URL: str = "https://www.youtube.com"
    YOUTUBE_PROXY_URL: Optional[str] = None  # 직접 요청 실패 시 사용할 미러 (예: https://my-host/youtube-proxy)
    USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    COOKIE_STRING: str = "CONSENT=YES+cb; GPS=1; VISITOR_INFO1_LIVE=true; YSC=true; PREF=tz=Asia.Tokyo"
    REQUEST_TIMEOUT: float = 10.0  # 초
    MAX_RETRIES: int = 3  # 첫 요청 이후 재시도 횟수
    RETRY_DELAY: float = 1.0  # urllib3 Retry backoff_factor (초)

    # 자막 설정
    DEFAULT_LANGUAGE: str = "en"
    ENABLE_INNERTUBE_FALLBACK: bool = True  # youtubei/v1/player 사용 여부
    ENABLE_TIMEDTEXT_FALLBACK: bool = True  # /api/timedtext 사용 여부
    ENABLE_YTDLP_FALLBACK: bool = True  # 마지막 수단으로 yt-dlp 사용 여부
    YTDLP_TIMEOUT: int = 60

    # 임시 파일 저장 경로 (yt-dlp 자막 다운로드)
    TEMP_DIR: str = "/tmp/ytsubs"

    # 워치 페이지 캐시
    CACHE_MAX_SIZE: int = 100
    CACHE_TTL_SECONDS: int = 600

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """
    설정 인스턴스를 반환합니다.
    lru_cache를 사용하여 싱글톤 패턴을 구현합니다.
    """
    return Settings()
