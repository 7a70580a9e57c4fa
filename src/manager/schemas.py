"""API-level Pydantic schemas for the manager service."""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from common.schemas import Language, MediaItem, MediaType


class MediaRegistration(BaseModel):
    """Body of a media create/update call."""

    id: int = Field(..., ge=0, description="Media identifier")
    path: Optional[str] = Field(
        None, description="Directory holding the media file and its subtitles"
    )
    file_name: str = Field(..., description="Media file name without extension")
    media_type: MediaType = Field(..., description="Movie or episode")

    @field_validator("file_name")
    @classmethod
    def validate_file_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("File name cannot be empty")
        return v

    def to_media_item(self, fingerprint: Optional[str] = None) -> MediaItem:
        return MediaItem(
            id=self.id,
            path=self.path,
            file_name=self.file_name,
            media_type=self.media_type,
            fingerprint=fingerprint,
        )


class LanguageSettingsResponse(BaseModel):
    """Configured source and target languages."""

    source_languages: List[Language] = Field(default_factory=list)
    target_languages: List[Language] = Field(default_factory=list)


class ActiveRequestsResponse(BaseModel):
    count: int = Field(..., ge=0, description="Requests queued or running")



class QueueStatusResponse(BaseModel):
    """Response for queue status check."""

    queue_size: int = Field(
        ..., ge=0, description="Translation messages waiting in RabbitMQ"
    )
    active_requests: int = Field(..., ge=0, description="Requests queued or running")
