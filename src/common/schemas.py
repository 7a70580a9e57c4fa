"""Shared Pydantic schemas for the subtitle translation service."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from common.utils import DateTimeUtils, JobIdUtils, LanguageUtils, SubtitleNameUtils


class MediaType(str, Enum):
    """Kind of media a subtitle set belongs to."""

    MOVIE = "movie"
    EPISODE = "episode"


class RequestStatus(str, Enum):
    """Lifecycle of a translation request, owned by the worker subsystem."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            RequestStatus.COMPLETED,
            RequestStatus.FAILED,
            RequestStatus.CANCELLED,
        )


class SkipReason(str, Enum):
    """Why gap resolution produced no plan."""

    NO_LANGUAGES_CONFIGURED = "no_languages_configured"
    NO_VALID_SOURCE_OR_TARGETS = "no_valid_source_or_targets"
    SOURCE_SUBTITLE_MISSING = "source_subtitle_missing"


class ProcessOutcome(str, Enum):
    """Terminal branch reached by one media processing run."""

    NO_PATH = "no_path"
    NO_MATCHING_SUBTITLES = "no_matching_subtitles"
    UNCHANGED = "unchanged"
    NO_LANGUAGES_CONFIGURED = "no_languages_configured"
    NO_VALID_SOURCE_OR_TARGETS = "no_valid_source_or_targets"
    SOURCE_SUBTITLE_MISSING = "source_subtitle_missing"
    UP_TO_DATE = "up_to_date"
    REQUESTS_CREATED = "requests_created"

    @classmethod
    def from_skip_reason(cls, reason: SkipReason) -> "ProcessOutcome":
        return cls(reason.value)


class MediaItem(BaseModel):
    """A movie or episode known to the library."""

    id: int = Field(..., description="Media identifier")
    path: Optional[str] = Field(
        None, description="Directory holding the media file and its subtitles"
    )
    file_name: str = Field(
        ..., description="Media file name without extension (e.g., 'Movie (2020)')"
    )
    media_type: MediaType = Field(..., description="Movie or episode")
    fingerprint: Optional[str] = Field(
        None, description="Fingerprint of the subtitle set at the last processing run"
    )

    @property
    def lock_key(self) -> str:
        return f"{self.media_type.value}:{self.id}"

    class Config:
        json_schema_extra = {
            "example": {
                "id": 42,
                "path": "/media/movies/Movie (2020)",
                "file_name": "Movie (2020)",
                "media_type": "movie",
                "fingerprint": None,
            }
        }


class SubtitleFile(BaseModel):
    """A subtitle file found next to a media file. Read fresh on every run."""

    path: str = Field(..., description="Absolute path of the subtitle file")
    file_name: str = Field(..., description="File name including extension")
    language: str = Field(..., description="Language code as found on disk")
    format: str = Field(..., description="Subtitle format tag (e.g., 'srt', 'ass')")

    @property
    def base_name(self) -> str:
        """Media base name this subtitle belongs to."""
        return SubtitleNameUtils.base_name(self.file_name)

    @property
    def tags(self) -> tuple:
        """Variant tags such as 'forced' or 'sdh'; empty for a full subtitle."""
        parsed = SubtitleNameUtils.parse(self.file_name)
        return parsed.tags if parsed else ()

    class Config:
        frozen = True


class Language(BaseModel):
    """A configured language entry as stored in settings."""

    name: str = Field(default="", description="Display name (e.g., 'English')")
    code: str = Field(..., description="Language code (e.g., 'en')")

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        code = LanguageUtils.normalize_code(v)
        if not code:
            raise ValueError("Language code cannot be empty")
        return code


class LanguageSettings(BaseModel):
    """Source and target language sets used for gap resolution."""

    source_languages: FrozenSet[str] = Field(default_factory=frozenset)
    target_languages: FrozenSet[str] = Field(default_factory=frozenset)

    @field_validator("source_languages", "target_languages", mode="before")
    @classmethod
    def normalize(cls, v: Any) -> FrozenSet[str]:
        if v is None:
            return frozenset()
        return LanguageUtils.normalize_codes(v)

    class Config:
        frozen = True


class GapPlan(BaseModel):
    """Translation work needed for one media item."""

    source_subtitle: SubtitleFile
    source_language: str
    missing_targets: FrozenSet[str]

    class Config:
        frozen = True


class TranslationRequest(BaseModel):
    """One source-to-target subtitle translation handed to the worker."""

    id: UUID = Field(
        default_factory=JobIdUtils.generate_job_id,
        description="Unique identifier for the request",
    )
    media_id: int = Field(..., description="Media identifier")
    media_type: MediaType = Field(..., description="Movie or episode")
    subtitle_path: str = Field(..., description="Path of the source subtitle file")
    source_language: str = Field(..., description="Source language code")
    target_language: str = Field(..., description="Target language code")
    subtitle_format: str = Field(..., description="Format of the source subtitle")
    status: RequestStatus = Field(
        default=RequestStatus.QUEUED, description="Current lifecycle state"
    )
    progress: int = Field(default=0, ge=0, le=100, description="Percent complete")
    error_message: Optional[str] = Field(
        None, description="Error message if translation failed"
    )
    created_at: datetime = Field(
        default_factory=DateTimeUtils.get_current_utc_datetime,
        description="When the request was created",
    )
    updated_at: datetime = Field(
        default_factory=DateTimeUtils.get_current_utc_datetime,
        description="When the request was last updated",
    )

    class Config:
        json_schema_extra = {
            "example": {
                "id": "123e4567-e89b-12d3-a456-426614174000",
                "media_id": 42,
                "media_type": "movie",
                "subtitle_path": "/media/movies/Movie (2020)/Movie (2020).en.srt",
                "source_language": "en",
                "target_language": "es",
                "subtitle_format": "srt",
                "status": "queued",
                "progress": 0,
                "error_message": None,
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-01T00:00:00Z",
            }
        }


class ProcessResult(BaseModel):
    """Result of processing the subtitles of one media item."""

    media_id: int
    media_type: MediaType
    outcome: ProcessOutcome
    requests_created: int = 0
    fingerprint: Optional[str] = None
    fingerprint_updated: bool = False

    @property
    def work_generated(self) -> bool:
        """True when at least one translation request was submitted."""
        return self.requests_created > 0


# ============================================================================
# Progress channel events
# ============================================================================


class EventType(str, Enum):
    """Types of progress events delivered to observers."""

    REQUEST_PROGRESS = "request.progress"
    REQUEST_ACTIVE = "request.active"
    JOB_PROGRESS_UPDATED = "job.progress"
    JOB_STATE_UPDATED = "job.state"
    GROUP_COMPLETED = "group.completed"
    SETTING_UPDATE = "setting.update"


class RequestProgress(BaseModel):
    request_id: UUID
    percent: int = Field(..., ge=0, le=100)


class RequestActive(BaseModel):
    count: int = Field(..., ge=0)


class JobProgressUpdated(BaseModel):
    job_id: UUID
    percent: int = Field(..., ge=0, le=100)


class JobStateUpdated(BaseModel):
    job_id: UUID
    state: RequestStatus


class GroupCompleted(BaseModel):
    group: str


class SettingUpdate(BaseModel):
    key: str
    value: str


class ProgressEvent(BaseModel):
    """Envelope published on the progress exchange."""

    event_type: EventType = Field(..., description="Type of event")
    timestamp: datetime = Field(
        default_factory=DateTimeUtils.get_current_utc_datetime,
        description="When the event occurred",
    )
    payload: Dict[str, Any] = Field(
        default_factory=dict, description="Event payload data"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "event_type": "job.state",
                "timestamp": "2024-01-01T00:00:00Z",
                "payload": {
                    "job_id": "123e4567-e89b-12d3-a456-426614174000",
                    "state": "running",
                },
            }
        }


class ScanSummary(BaseModel):
    """Counts of outcomes for one library scan."""

    total: int = 0
    requests_created: int = 0
    failed: int = 0
    outcomes: Dict[ProcessOutcome, int] = Field(default_factory=dict)
    failed_media: List[str] = Field(default_factory=list)
