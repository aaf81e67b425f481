"""
Pydantic schemas for transcription module.
DTOs for API input/output validation.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TranscribeResponse(BaseModel):
    """Response DTO for the transcribe endpoint."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "message": "Transcription successful",
                "transcript": "Hello world, this is a test recording.",
                "filename": "1718000000000000000-3f2a9c1b-memo.webm",
                "userId": "5b0c1f7e-8d2a-4c1e-9b7e-2f1d6a3c4e5f",
            }
        },
    )

    message: str = Field("Transcription successful", description="Outcome message")
    transcript: str = Field(..., description="Transcribed text (may be empty)")
    filename: str = Field(..., description="Stored name of the uploaded file")
    user_id: str = Field(..., description="Owner of the transcript")


class TranscriptRecordRead(BaseModel):
    """DTO for reading a stored transcript."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: str = Field(..., description="Record ID")
    user_id: str = Field(..., description="Owner user ID")
    filename: str = Field(..., description="Stored name of the uploaded file")
    transcript: str = Field(..., description="Transcribed text")
    created_at: datetime = Field(..., description="Creation timestamp")


class ErrorResponse(BaseModel):
    """Error response for failed requests."""

    message: str = Field(..., description="Short human-readable message")
    error: str | None = Field(None, description="Diagnostic detail, when safe to share")

    model_config = {
        "json_schema_extra": {
            "example": {
                "message": "Transcription failed.",
                "error": "Deepgram returned status 401",
            }
        }
    }
