"""
Transcription pipeline - one upload from intake to stored transcript.

Stages run strictly in order: intake, authenticate, transcribe, persist.
Each stage returns either its value or a StageFailure; the first failure
ends the run. The staged upload is deleted once, after the last stage,
whatever the outcome.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional, Protocol, Union

from voice2text.auth.schemas import AuthenticatedUser
from voice2text.auth.verifier import IdentityVerifier
from voice2text.core.exceptions import AuthenticationError
from voice2text.storage.temp_store import TemporaryFileStore, UploadedAudio
from voice2text.transcription.client import (
    RecognitionOptions,
    TranscriptionClient,
    error_detail,
    is_error_payload,
    reduce_transcript,
)
from voice2text.transcription.repository import TranscriptRepository
from voice2text.transcription.schemas import TranscribeResponse

logger = logging.getLogger(__name__)

AUDIO_FIELD = "audio"


class Upload(Protocol):
    """The parts of a multipart file the pipeline reads."""

    filename: Optional[str]
    content_type: Optional[str]
    file: BinaryIO


class PipelineState(str, Enum):
    """Terminal states of a pipeline run."""
    COMPLETED = "completed"
    REJECTED_NO_FILE = "rejected_no_file"
    REJECTED_BAD_AUTH = "rejected_bad_auth"
    TRANSCRIPTION_FAILED = "transcription_failed"
    PERSISTENCE_FAILED = "persistence_failed"
    INTERNAL_ERROR = "internal_error"


class ErrorKind(str, Enum):
    """Error taxonomy; the router maps each kind to a status code."""
    NO_FILE = "no_file"
    BAD_AUTH = "bad_auth"
    UPSTREAM = "upstream"
    STORAGE = "storage"
    INTERNAL = "internal"


TERMINAL_STATE = {
    ErrorKind.NO_FILE: PipelineState.REJECTED_NO_FILE,
    ErrorKind.BAD_AUTH: PipelineState.REJECTED_BAD_AUTH,
    ErrorKind.UPSTREAM: PipelineState.TRANSCRIPTION_FAILED,
    ErrorKind.STORAGE: PipelineState.PERSISTENCE_FAILED,
    ErrorKind.INTERNAL: PipelineState.INTERNAL_ERROR,
}


@dataclass(frozen=True)
class StageFailure:
    """A definitive failure signal from one stage."""

    kind: ErrorKind
    message: str
    error: Optional[str] = None

    def to_content(self) -> dict:
        content = {"message": self.message}
        if self.error:
            content["error"] = self.error
        return content


@dataclass(frozen=True)
class PipelineResult:
    """Outcome of one run: a response on success, a failure otherwise."""

    state: PipelineState
    response: Optional[TranscribeResponse] = None
    failure: Optional[StageFailure] = None

    @property
    def ok(self) -> bool:
        return self.state is PipelineState.COMPLETED


class TranscriptionPipeline:
    """Runs one transcribe request against the given collaborators."""

    def __init__(
            self,
            store: TemporaryFileStore,
            verifier: IdentityVerifier,
            client: TranscriptionClient,
            repository: TranscriptRepository,
            options: RecognitionOptions | None = None,
    ):
        self.store = store
        self.verifier = verifier
        self.client = client
        self.repository = repository
        self.options = options or RecognitionOptions()

    async def run(self, upload: Union[Upload, str, None], authorization: Optional[str]) -> PipelineResult:
        """
        Process one upload.

        Args:
            upload: The multipart file, or None (or a form string) when the request had none
            authorization: Raw Authorization header value

        Returns:
            PipelineResult with the terminal state reached
        """
        audio: UploadedAudio | None = None
        try:
            staged = await self._intake(upload)
            if isinstance(staged, StageFailure):
                return self._fail(staged)
            audio = staged

            user = await self._authenticate(authorization)
            if isinstance(user, StageFailure):
                return self._fail(user)

            transcript = await self._transcribe(audio)
            if isinstance(transcript, StageFailure):
                return self._fail(transcript)

            stored = await self._persist(user, audio, transcript)
            if isinstance(stored, StageFailure):
                return self._fail(stored)

            logger.info(f"[Pipeline] Transcription stored for user: {user.id}, file: {audio.filename}")
            return PipelineResult(
                state=PipelineState.COMPLETED,
                response=TranscribeResponse(
                    transcript=transcript,
                    filename=audio.filename,
                    user_id=user.id,
                ),
            )

        except Exception as e:
            logger.exception(f"[Pipeline] Unexpected error: {e}")
            return self._fail(
                StageFailure(ErrorKind.INTERNAL, "Internal server error", error=e.__class__.__name__)
            )

        finally:
            if audio is not None:
                await self._cleanup(audio)

    # ═══════════════════════════════════════════════════════════════════════
    # STAGES
    # ═══════════════════════════════════════════════════════════════════════

    async def _intake(self, upload: Union[Upload, str, None]) -> Union[UploadedAudio, StageFailure]:
        if upload is None or isinstance(upload, str) or not upload.filename:
            return StageFailure(
                ErrorKind.NO_FILE,
                f"No audio file in request (field name must be '{AUDIO_FIELD}').",
            )

        audio = await self.store.save(upload.file, upload.filename, upload.content_type)
        logger.info(
            f"[Pipeline] Received file: {audio.storage_path} "
            f"({audio.size_bytes} bytes), mimetype: {audio.mime_type}"
        )
        return audio

    async def _authenticate(self, authorization: Optional[str]) -> Union[AuthenticatedUser, StageFailure]:
        try:
            return await self.verifier.authenticate(authorization)
        except AuthenticationError as e:
            logger.warning(f"[Pipeline] Authentication failed: {e.message}")
            return StageFailure(ErrorKind.BAD_AUTH, e.message)

    async def _transcribe(self, audio: UploadedAudio) -> Union[str, StageFailure]:
        data = await self.store.read_bytes(audio)

        try:
            payload = await self.client.transcribe(data, audio.mime_type, self.options)
        except Exception as e:
            detail = getattr(e, "message", None) or str(e) or e.__class__.__name__
            logger.error(f"[Pipeline] Transcription service error: {detail}")
            return StageFailure(ErrorKind.UPSTREAM, "Transcription failed.", error=detail)

        if is_error_payload(payload):
            detail = error_detail(payload)
            logger.error(f"[Pipeline] Transcription service returned an error: {detail}")
            return StageFailure(ErrorKind.UPSTREAM, "Transcription failed.", error=detail)

        transcript = reduce_transcript(payload)
        logger.info(
            f"[Pipeline] Transcription result (truncated): "
            f"{transcript[:200] if transcript else '<empty>'}"
        )
        return transcript

    async def _persist(
            self,
            user: AuthenticatedUser,
            audio: UploadedAudio,
            transcript: str,
    ) -> Union[str, StageFailure]:
        try:
            record = await self.repository.insert(user.id, audio.filename, transcript)
        except Exception as e:
            detail = getattr(e, "message", None) or e.__class__.__name__
            logger.error(f"[Pipeline] Failed to save transcription: {detail}")
            return StageFailure(ErrorKind.STORAGE, "Failed to save transcription to DB.", error=detail)
        return record.id

    async def _cleanup(self, audio: UploadedAudio) -> None:
        try:
            await self.store.delete(audio)
        except Exception as e:
            logger.error(f"[Pipeline] Failed to delete file: {audio.storage_path} ({e})")

    @staticmethod
    def _fail(failure: StageFailure) -> PipelineResult:
        return PipelineResult(state=TERMINAL_STATE[failure.kind], failure=failure)
