"""
Transcription client - Deepgram prerecorded audio API over httpx.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from voice2text.config import get_settings
from voice2text.core.exceptions import TranscriptionError, TransientTranscriptionError

logger = logging.getLogger(__name__)

# Keys Deepgram uses for error bodies
ERROR_KEYS = ("err_code", "err_msg", "error")

# Marks a response body that could not be decoded as JSON
_UNDECODABLE = object()


@dataclass(frozen=True)
class RecognitionOptions:
    """Fixed recognition configuration sent with every request."""

    model: str = "nova-2"
    smart_format: bool = True

    def as_params(self) -> dict[str, str]:
        return {
            "model": self.model,
            "smart_format": "true" if self.smart_format else "false",
        }


def is_error_payload(payload: Any) -> bool:
    """True when a nominally successful response actually carries an error."""
    if not isinstance(payload, dict):
        return False
    return any(payload.get(key) for key in ERROR_KEYS)


def error_detail(payload: Any) -> str:
    if isinstance(payload, dict):
        for key in ("err_msg", "error", "message", "err_code"):
            value = payload.get(key)
            if value:
                return str(value)
    return "Deepgram returned an error"


def reduce_transcript(payload: Any) -> str:
    """
    Reduce a Deepgram response to one transcript string.

    Uses the first channel's first alternative when it has text, otherwise
    joins the non-empty transcripts of all of that channel's alternatives.
    Any unexpected shape yields an empty string.
    """
    try:
        alternatives = payload["results"]["channels"][0]["alternatives"]

        if alternatives:
            first = alternatives[0].get("transcript")
            if isinstance(first, str) and first:
                return first

        parts = [alt.get("transcript") for alt in alternatives]
        return " ".join(part for part in parts if isinstance(part, str) and part)

    except (KeyError, IndexError, TypeError, AttributeError) as e:
        logger.warning(f"[Transcription] Could not parse Deepgram response properly: {e!r}")
        return ""


class TranscriptionClient(ABC):
    """Abstract speech-to-text backend."""

    @abstractmethod
    async def transcribe(
            self,
            audio: bytes,
            mime_type: str,
            options: RecognitionOptions,
    ) -> dict:
        """
        Send audio for recognition.

        Returns:
            The raw recognition response

        Raises:
            TranscriptionError: If the service reports a failure
        """

    async def close(self) -> None:
        """Release any held connections."""


class DeepgramClient(TranscriptionClient):
    """Deepgram REST client for prerecorded audio."""

    def __init__(
            self,
            api_key: str,
            base_url: str = "https://api.deepgram.com/v1",
            timeout: float = 300.0,
            max_retries: int = 0,
            retry_backoff: float = 1.0,
            http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.listen_url = f"{base_url.rstrip('/')}/listen"
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.retry_backoff = retry_backoff
        self._client = http_client

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def transcribe(
            self,
            audio: bytes,
            mime_type: str,
            options: RecognitionOptions,
    ) -> dict:
        logger.info(
            f"[DeepgramClient] Sending {len(audio)} bytes ({mime_type}) "
            f"with options: {options.as_params()}"
        )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.retry_backoff),
            retry=retry_if_exception_type(TransientTranscriptionError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._send(audio, mime_type, options)

    async def _send(self, audio: bytes, mime_type: str, options: RecognitionOptions) -> dict:
        try:
            response = await self.client.post(
                self.listen_url,
                params=options.as_params(),
                headers={
                    "Authorization": f"Token {self.api_key}",
                    "Content-Type": mime_type or "application/octet-stream",
                },
                content=audio,
            )
        except httpx.RequestError as e:
            logger.error(f"[DeepgramClient] Request error: {e}")
            raise TransientTranscriptionError(f"Failed to reach Deepgram: {e.__class__.__name__}")

        try:
            payload = response.json()
        except ValueError:
            payload = _UNDECODABLE

        if response.status_code == 429 or response.status_code >= 500:
            logger.error(f"[DeepgramClient] Upstream unavailable: {response.status_code}")
            raise TransientTranscriptionError(
                f"Deepgram returned status {response.status_code}: {error_detail(payload)}"
            )

        if response.status_code != 200:
            logger.error(f"[DeepgramClient] Request rejected: {response.status_code} {response.text}")
            raise TranscriptionError(
                f"Deepgram returned status {response.status_code}: {error_detail(payload)}"
            )

        if payload is _UNDECODABLE:
            raise TranscriptionError("Deepgram returned a non-JSON response")

        if is_error_payload(payload):
            logger.error(f"[DeepgramClient] Deepgram returned an error object: {payload}")
            raise TranscriptionError(error_detail(payload))

        return payload

    async def close(self) -> None:
        """Close the HTTP client connection."""
        if self._client is not None:
            await self._client.aclose()


# Singleton instance for dependency injection
_transcription_client: TranscriptionClient | None = None


def get_transcription_client() -> TranscriptionClient:
    """Dependency provider for the TranscriptionClient."""
    global _transcription_client
    if _transcription_client is None:
        settings = get_settings()
        _transcription_client = DeepgramClient(
            settings.deepgram_api_key,
            base_url=settings.deepgram_api_url,
            timeout=settings.transcription_timeout_seconds,
            max_retries=settings.transcription_max_retries,
            retry_backoff=settings.transcription_retry_backoff_seconds,
        )
    return _transcription_client


def get_recognition_options() -> RecognitionOptions:
    settings = get_settings()
    return RecognitionOptions(
        model=settings.deepgram_model,
        smart_format=settings.deepgram_smart_format,
    )


async def close_transcription_client() -> None:
    """Close the shared client on shutdown."""
    global _transcription_client
    if _transcription_client is not None:
        await _transcription_client.close()
        _transcription_client = None
