"""
YTSubs 자막 데이터 모델
Pydantic을 사용하여 자막 데이터 구조와 API 요청/응답 형식을 정의합니다.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from enum import Enum


class SubtitleType(str, Enum):
    """자막 유형 열거형"""
    AUTO = "auto"       # YouTube 자동 생성 자막 (kind == "asr")
    MANUAL = "manual"   # 수동 자막 (제작자 업로드)


class SubtitleFormat(str, Enum):
    """출력 자막 포맷"""
    VTT = "vtt"
    SRT = "srt"
    TXT = "txt"

    @property
    def media_type(self) -> str:
        if self is SubtitleFormat.VTT:
            return "text/vtt"
        if self is SubtitleFormat.SRT:
            return "application/x-subrip"
        return "text/plain"


class SubtitleEntry(BaseModel):
    """
    개별 자막 항목 모델
    timedtext XML의 <text start dur> 하나에 해당합니다.
    """
    start: float = Field(..., ge=0, description="시작 시간 (초)")
    duration: float = Field(default=0.0, ge=0, description="표시 시간 (초)")
    text: str = Field(default="", description="자막 텍스트")

    @property
    def end(self) -> float:
        """종료 시간 (초)"""
        return self.start + self.duration


class CaptionTrack(BaseModel):
    """
    자막 트랙 메타데이터
    playerCaptionsTracklistRenderer.captionTracks 항목을 나타냅니다.
    """
    base_url: str = Field(..., description="자막 XML URL")
    language_code: str = Field(default="", description="언어 코드 (예: en, ko)")
    kind: Optional[str] = Field(default=None, description="트랙 종류 (자동 자막은 'asr')")
    name: str = Field(default="", description="표시 이름")

    @property
    def is_auto(self) -> bool:
        return self.kind == "asr"

    @property
    def subtitle_type(self) -> SubtitleType:
        return SubtitleType.AUTO if self.is_auto else SubtitleType.MANUAL

    @classmethod
    def from_player_track(cls, track: dict) -> "CaptionTrack":
        """플레이어 응답의 captionTracks 항목에서 생성합니다."""
        name = track.get("name") or {}
        if "simpleText" in name:
            display_name = name["simpleText"]
        else:
            display_name = "".join(run.get("text", "") for run in name.get("runs", []))
        return cls(
            base_url=track.get("baseUrl", ""),
            language_code=track.get("languageCode", ""),
            kind=track.get("kind"),
            name=display_name,
        )


class VideoInfo(BaseModel):
    """영상 기본 정보"""
    video_id: str
    title: str
    source: str = Field(default="default", description="제목을 얻은 경로")


class SubtitleData(BaseModel):
    """
    전체 자막 데이터 모델
    파싱과 후처리를 마친 자막 항목 목록을 담습니다.
    """
    video_id: str = Field(..., description="YouTube 영상 ID")
    title: Optional[str] = Field(default=None, description="영상 제목")
    language: str = Field(..., description="자막 언어")
    subtitle_type: SubtitleType = Field(..., description="자막 유형")
    source: str = Field(default="", description="자막을 가져온 전략")
    entries: list[SubtitleEntry] = Field(default_factory=list, description="자막 항목 목록")

    @property
    def total_entries(self) -> int:
        return len(self.entries)

    @property
    def full_text(self) -> str:
        """전체 자막 텍스트 (공백으로 연결)"""
        return " ".join(entry.text for entry in self.entries)

    @property
    def duration(self) -> float:
        """마지막 자막 종료 시간"""
        if not self.entries:
            return 0.0
        return max(entry.end for entry in self.entries)

    def entry_at(self, time: float) -> Optional[SubtitleEntry]:
        """주어진 시점에 표시되는 자막을 반환합니다."""
        for entry in self.entries:
            if entry.start <= time < entry.end:
                return entry
        return None

    def entries_between(self, start_time: float, end_time: float) -> list[SubtitleEntry]:
        """
        구간 [start_time, end_time) 안에서 시작하거나
        (start_time, end_time] 안에서 끝나는 자막을 반환합니다.
        """
        return [
            entry for entry in self.entries
            if start_time <= entry.start < end_time
            or start_time < entry.end <= end_time
        ]


# ===== API 요청/응답 모델 (camelCase 필드 유지) =====

class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class VideoInfoResponse(ApiModel):
    success: bool = Field(..., description="성공 여부")
    title: str = Field(..., description="영상 제목")
    video_id: str = Field(..., alias="videoId")
    source: str = Field(default="default")
    error: Optional[str] = None


class SubtitlesResponse(ApiModel):
    success: bool = Field(..., description="성공 여부")
    subtitles: Optional[str] = Field(default=None, description="timedtext XML 원문")
    video_id: str = Field(..., alias="videoId")
    subtitle_type: SubtitleType = Field(..., alias="subtitleType")
    language: Optional[str] = Field(default=None, description="선택된 트랙 언어")
    source: Optional[str] = Field(default=None, description="자막을 가져온 전략")
    error: Optional[str] = None


class ParseSubtitlesRequest(ApiModel):
    xml_data: Optional[str] = Field(default=None, alias="xmlData")


class ParseSubtitlesResponse(ApiModel):
    success: bool
    subtitles: list[SubtitleEntry] = Field(default_factory=list)
    error: Optional[str] = None


class CaptionTrackInfo(ApiModel):
    language_code: str = Field(..., alias="languageCode")
    name: str = ""
    kind: Optional[str] = None
    subtitle_type: SubtitleType = Field(..., alias="subtitleType")

    @classmethod
    def from_track(cls, track: CaptionTrack) -> "CaptionTrackInfo":
        return cls(
            language_code=track.language_code,
            name=track.name,
            kind=track.kind,
            subtitle_type=track.subtitle_type,
        )


class CaptionTracksResponse(ApiModel):
    success: bool
    video_id: str = Field(..., alias="videoId")
    tracks: list[CaptionTrackInfo] = Field(default_factory=list)
    total_count: int = Field(default=0, alias="totalCount")
