"""
Transcription router - API endpoints for audio transcription and history.
"""

import logging
from typing import Annotated, List, Optional, Union

from fastapi import APIRouter, Depends, File, Header, Request, UploadFile, status
from fastapi.responses import JSONResponse

from voice2text.auth.verifier import IdentityVerifier, get_identity_verifier
from voice2text.config import get_settings
from voice2text.core.dependencies import CurrentUser
from voice2text.core.exceptions import StorageError
from voice2text.rate_limit import limiter
from voice2text.storage.temp_store import TemporaryFileStore, get_temp_store
from voice2text.transcription.client import (
    RecognitionOptions,
    TranscriptionClient,
    get_recognition_options,
    get_transcription_client,
)
from voice2text.transcription.pipeline import ErrorKind, TranscriptionPipeline
from voice2text.transcription.repository import TranscriptRepository, get_transcript_repository
from voice2text.transcription.schemas import ErrorResponse, TranscribeResponse, TranscriptRecordRead

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(tags=["Transcription"])

STATUS_BY_KIND = {
    ErrorKind.NO_FILE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.BAD_AUTH: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.UPSTREAM: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.STORAGE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_transcription_pipeline(
        store: TemporaryFileStore = Depends(get_temp_store),
        verifier: IdentityVerifier = Depends(get_identity_verifier),
        client: TranscriptionClient = Depends(get_transcription_client),
        repository: TranscriptRepository = Depends(get_transcript_repository),
        options: RecognitionOptions = Depends(get_recognition_options),
) -> TranscriptionPipeline:
    """Assemble a pipeline from the shared collaborators and this request's repository."""
    return TranscriptionPipeline(store, verifier, client, repository, options)


@router.post(
    "/transcribe",
    response_model=TranscribeResponse,
    status_code=status.HTTP_200_OK,
    summary="Transcribe audio file",
    description="Upload an audio file under the 'audio' field and get its transcript. "
                "The transcript is saved to the caller's history.",
    responses={
        200: {"model": TranscribeResponse, "description": "Successful transcription"},
        400: {"model": ErrorResponse, "description": "No audio file in request"},
        401: {"model": ErrorResponse, "description": "Missing, malformed or invalid token"},
        429: {"description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Failed to save transcription"},
        502: {"model": ErrorResponse, "description": "Transcription service failed"},
    },
)
@limiter.limit(settings.transcribe_rate_limit)
async def transcribe_audio(
        request: Request,
        audio: Annotated[Union[UploadFile, str, None], File(description="Audio file to transcribe")] = None,
        authorization: Annotated[Optional[str], Header()] = None,
        pipeline: TranscriptionPipeline = Depends(get_transcription_pipeline),
):
    """
    Transcribe an uploaded audio file and store the result.

    The file is checked before the token, so a request without a file
    is rejected without contacting the auth provider.
    A plain text value in the audio field counts as no file.
    """
    result = await pipeline.run(audio, authorization)

    if result.failure is not None:
        logger.info(f"[TranscriptionRouter] Request ended in state: {result.state.value}")
        return JSONResponse(
            status_code=STATUS_BY_KIND[result.failure.kind],
            content=result.failure.to_content(),
        )

    return result.response


@router.get(
    "/transcriptions",
    response_model=List[TranscriptRecordRead],
    status_code=status.HTTP_200_OK,
    summary="List my transcriptions",
    description="Get every transcript belonging to the authenticated user, newest first.",
    responses={
        200: {"model": List[TranscriptRecordRead], "description": "List of transcripts"},
        401: {"model": ErrorResponse, "description": "Missing, malformed or invalid token"},
        500: {"model": ErrorResponse, "description": "Failed to fetch transcriptions"},
    },
)
async def list_transcriptions(
        current_user: CurrentUser,
        repository: TranscriptRepository = Depends(get_transcript_repository),
):
    """List the caller's transcripts. Results are scoped to the caller only."""
    logger.info(f"[TranscriptionRouter] Listing transcriptions for user: {current_user.id}")

    try:
        records = await repository.list_by_user(current_user.id)
    except StorageError as e:
        logger.error(f"[TranscriptionRouter] Select error: {e.message}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Failed to fetch transcriptions."},
        )

    return [TranscriptRecordRead.model_validate(record) for record in records]
