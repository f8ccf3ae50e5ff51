"""
YTSubs 워치 페이지 캐시 모듈

같은 영상에 대해 video-info, subtitles 요청이 연달아 들어오므로
워치 페이지 HTML과 플레이어 응답을 메모리에 잠시 보관합니다.
"""

import time
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from threading import Lock
from typing import Optional, Dict, Any

from config import get_settings


logger = logging.getLogger(__name__)


@dataclass
class CachedPage:
    """캐싱된 워치 페이지"""
    video_id: str
    html: str
    player_response: Optional[Dict[str, Any]]
    created_at: float = field(default_factory=time.time)

    def is_expired(self, ttl_seconds: int) -> bool:
        return time.time() - self.created_at > ttl_seconds


class PlayerResponseCache:
    """
    워치 페이지 캐시

    저장 순서를 유지하는 dict에 보관하고, 가득 차면 가장 먼저 저장된 항목부터 버립니다.
    max_size가 0 이하이면 아무것도 저장하지 않습니다.
    """

    def __init__(self, max_size: int = 100, ttl_seconds: int = 600):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._pages: "OrderedDict[str, CachedPage]" = OrderedDict()
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._pages)

    def get(self, video_id: str) -> Optional[CachedPage]:
        with self._lock:
            page = self._pages.get(video_id)
            if page is not None and page.is_expired(self.ttl_seconds):
                self._pages.pop(video_id)
                page = None

            if page is None:
                self._misses += 1
            else:
                self._hits += 1
                logger.debug("[Cache] hit: %s", video_id)
            return page

    def set(self, video_id: str, page: CachedPage) -> None:
        if self.max_size <= 0:
            return

        with self._lock:
            self._pages[video_id] = page
            self._pages.move_to_end(video_id)
            while len(self._pages) > self.max_size:
                evicted, _ = self._pages.popitem(last=False)
                logger.debug("[Cache] evict: %s", evicted)

    def remove(self, video_id: str) -> bool:
        with self._lock:
            removed = self._pages.pop(video_id, None) is not None
        if removed:
            logger.info("[Cache] 캐시 제거: %s", video_id)
        return removed

    def clear(self) -> int:
        """전체 캐시를 비우고 제거된 항목 수를 반환합니다."""
        with self._lock:
            count = len(self._pages)
            self._pages.clear()
        logger.info("[Cache] 캐시 초기화: %d개 항목 제거", count)
        return count

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "cached_videos": len(self._pages),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
                "hits": self._hits,
                "misses": self._misses,
                "video_ids": list(self._pages),
            }


_page_cache: Optional[PlayerResponseCache] = None


def get_cache() -> PlayerResponseCache:
    """설정값으로 만든 프로세스 공용 캐시를 반환합니다."""
    global _page_cache
    if _page_cache is None:
        settings = get_settings()
        _page_cache = PlayerResponseCache(
            max_size=settings.CACHE_MAX_SIZE,
            ttl_seconds=settings.CACHE_TTL_SECONDS,
        )
    return _page_cache
