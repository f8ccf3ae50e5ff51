"""
YTSubs Backend - FastAPI 메인 애플리케이션
YouTube 영상 정보 조회, 자막 추출 및 VTT/SRT/TXT 다운로드 API를 제공합니다.
"""

import time
import logging
from typing import Optional
from urllib.parse import quote

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from config import get_settings
from ytsubs.models import (
    SubtitleType,
    SubtitleFormat,
    VideoInfoResponse,
    SubtitlesResponse,
    ParseSubtitlesRequest,
    ParseSubtitlesResponse,
    CaptionTrackInfo,
    CaptionTracksResponse,
)
from ytsubs.modules import (
    SubtitleExtractor,
    SubtitleExtractionError,
    InvalidVideoError,
    get_cache,
)
from ytsubs.utils import SubtitleParseError, load_entries, extract_video_id


settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger("ytsubs")

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="YouTube 자막 다운로드 API - VTT / SRT / TXT",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# 인스턴스 생성
cache = get_cache()
extractor = SubtitleExtractor(cache=cache)


# ===== 요청 로깅 미들웨어 =====

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    path = request.url.path
    tracked = path.startswith("/api/subtitles") or path.startswith("/api/download")

    if tracked:
        target = request.query_params.get("videoId") or request.query_params.get("url") or ""
        logger.info(
            "[REQUEST] %s %s video=%s client=%s",
            request.method, path, extract_video_id(target) or "unknown",
            request.client.host if request.client else "unknown",
        )

    response = await call_next(request)

    if tracked:
        logger.info("[RESPONSE] %s 완료 (%.2f초, status=%d)", path, time.time() - start_time, response.status_code)

    return response


# ===== 예외 핸들러 =====

@app.exception_handler(SubtitleExtractionError)
async def subtitle_extraction_error_handler(request: Request, exc: SubtitleExtractionError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc)})


@app.exception_handler(SubtitleParseError)
async def subtitle_parse_error_handler(request: Request, exc: SubtitleParseError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """본문/파라미터 검증 실패도 {success, error} 형식의 400으로 응답"""
    message = "잘못된 요청입니다."
    errors = exc.errors()
    if errors and errors[0].get("msg"):
        message = f"{message} {errors[0]['msg']}"
    return JSONResponse(status_code=400, content={"success": False, "error": message})


def _parse_subtitle_type(value: Optional[str]) -> SubtitleType:
    try:
        return SubtitleType(value)
    except ValueError:
        raise InvalidVideoError("유효하지 않은 자막 유형입니다. (auto 또는 manual)")


def _require(value: Optional[str], name: str) -> str:
    if not value or not value.strip():
        raise InvalidVideoError(f"'{name}' 파라미터가 필요합니다.")
    return value


# ===== Health =====

@app.get("/", tags=["Health"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "healthy",
        "yt_dlp": "available" if extractor.is_ytdlp_available() else "unavailable",
        "page_cache": cache.get_stats(),
    }


# ===== Cache =====

@app.get("/api/cache/stats", tags=["Cache"])
async def get_cache_stats():
    return {"success": True, "page_cache": cache.get_stats()}


@app.delete("/api/cache/{video_id}", tags=["Cache"])
async def clear_video_cache(video_id: str):
    removed = cache.remove(video_id)
    return {"success": removed, "video_id": video_id}


@app.delete("/api/cache", tags=["Cache"])
async def clear_all_cache():
    return {"success": True, "cleared": cache.clear()}


# ===== Video =====

@app.get("/api/video-info", tags=["Video"], response_model=VideoInfoResponse)
def get_video_info(
    videoId: Optional[str] = Query(default=None, description="YouTube Video ID 또는 URL"),
) -> VideoInfoResponse:
    """영상 제목을 조회합니다. 조회에 실패해도 기본 제목(Video_{id})을 돌려줍니다."""
    video = _require(videoId, "videoId")
    info = extractor.get_video_info(video)
    return VideoInfoResponse(success=True, title=info.title, video_id=info.video_id, source=info.source)


# ===== Subtitles =====

@app.get("/api/tracks", tags=["Subtitles"], response_model=CaptionTracksResponse)
def list_caption_tracks(
    videoId: Optional[str] = Query(default=None, description="YouTube Video ID 또는 URL"),
) -> CaptionTracksResponse:
    """사용 가능한 자막 트랙 목록을 조회합니다."""
    video = _require(videoId, "videoId")
    video_id = extractor.resolve_video_id(video)
    tracks = [CaptionTrackInfo.from_track(track) for track in extractor.list_caption_tracks(video_id)]
    return CaptionTracksResponse(success=True, video_id=video_id, tracks=tracks, total_count=len(tracks))


@app.get("/api/subtitles", tags=["Subtitles"], response_model=SubtitlesResponse, response_model_exclude_none=True)
def get_subtitles(
    videoId: Optional[str] = Query(default=None, description="YouTube Video ID 또는 URL"),
    subtitleType: Optional[str] = Query(default=None, description="auto 또는 manual"),
    lang: Optional[str] = Query(default=None, description="자막 언어 코드 (기본값: en)"),
) -> SubtitlesResponse:
    """자막 원문(timedtext XML)을 가져옵니다."""
    video = _require(videoId, "videoId")
    subtitle_type = _parse_subtitle_type(subtitleType)
    video_id = extractor.resolve_video_id(video)

    payload = extractor.fetch_subtitles(video_id, subtitle_type, lang)

    return SubtitlesResponse(
        success=True,
        subtitles=payload.xml,
        video_id=video_id,
        subtitle_type=payload.track.subtitle_type if payload.track else subtitle_type,
        language=payload.language,
        source=payload.source,
    )


@app.post("/api/parse-subtitles", tags=["Subtitles"], response_model=ParseSubtitlesResponse, response_model_exclude_none=True)
def parse_subtitles(request: ParseSubtitlesRequest) -> ParseSubtitlesResponse:
    """timedtext XML을 {start, duration, text} 목록으로 변환합니다."""
    if not request.xml_data:
        raise SubtitleParseError("자막 데이터(xmlData)가 필요합니다.")

    return ParseSubtitlesResponse(success=True, subtitles=load_entries(request.xml_data))


@app.get("/api/download", tags=["Subtitles"])
def download_subtitles(
    url: Optional[str] = Query(default=None, description="YouTube 영상 URL 또는 Video ID"),
    subtitleType: str = Query(default=SubtitleType.MANUAL.value, description="auto 또는 manual"),
    format: str = Query(default=SubtitleFormat.VTT.value, description="vtt, srt, txt"),
    lang: Optional[str] = Query(default=None, description="자막 언어 코드"),
) -> Response:
    """자막을 지정한 포맷의 파일로 내려받습니다."""
    video = _require(url, "url")
    subtitle_type = _parse_subtitle_type(subtitleType)
    try:
        fmt = SubtitleFormat(format)
    except ValueError:
        raise InvalidVideoError("지원하지 않는 자막 포맷입니다. (vtt, srt, txt)")

    filename, content = extractor.render_subtitle(video, subtitle_type, fmt, lang)

    ascii_name = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
    disposition = f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"
    return Response(
        content=content,
        media_type=f"{fmt.media_type}; charset=utf-8",
        headers={"Content-Disposition": disposition},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("ytsubs.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
