import io
import os
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

# Settings are cached on first import, so configure before importing the package
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DEEPGRAM_API_KEY", "test-deepgram-key")

import pytest
from starlette.datastructures import Headers, UploadFile

from voice2text.auth.schemas import AuthenticatedUser
from voice2text.auth.verifier import IdentityVerifier
from voice2text.core.exceptions import StorageError
from voice2text.storage.temp_store import TemporaryFileStore
from voice2text.transcription.client import RecognitionOptions, TranscriptionClient
from voice2text.transcription.models import Transcription

ALICE = "user-alice"
BOB = "user-bob"


def deepgram_payload(*transcripts) -> dict:
    return {
        "metadata": {"request_id": "req-1"},
        "results": {
            "channels": [
                {"alternatives": [{"transcript": t, "confidence": 0.9} for t in transcripts]}
            ]
        },
    }


def make_upload(
        data: bytes = b"RIFF....WAVEfmt audio",
        filename: Optional[str] = "memo.wav",
        content_type: str = "audio/wav",
) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(data),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


class FakeVerifier(IdentityVerifier):
    def __init__(self, tokens: Optional[dict] = None):
        self.tokens = tokens if tokens is not None else {"alice-token": ALICE, "bob-token": BOB}
        self.calls = []

    async def resolve(self, token):
        self.calls.append(token)
        if token == "explode":
            raise RuntimeError("auth provider unreachable")
        user_id = self.tokens.get(token)
        return AuthenticatedUser(id=user_id) if user_id else None


class FakeTranscriptionClient(TranscriptionClient):
    def __init__(self, payload=None, error: Optional[Exception] = None):
        self.payload = payload if payload is not None else deepgram_payload("hello world")
        self.error = error
        self.calls = []

    async def transcribe(self, audio, mime_type, options: RecognitionOptions):
        self.calls.append((audio, mime_type, options))
        if self.error is not None:
            raise self.error
        return self.payload


class FakeRepository:
    def __init__(self, fail_insert: bool = False, fail_list: bool = False):
        self.records = []
        self.fail_insert = fail_insert
        self.fail_list = fail_list
        self.insert_calls = 0

    async def insert(self, user_id, filename, transcript):
        self.insert_calls += 1
        if self.fail_insert:
            raise StorageError("Database error: OperationalError")
        record = Transcription(
            id=str(uuid4()),
            user_id=user_id,
            filename=filename,
            transcript=transcript,
            created_at=datetime.now(timezone.utc),
        )
        self.records.append(record)
        return record

    async def list_by_user(self, user_id):
        if self.fail_list:
            raise StorageError("Database error: OperationalError")
        owned = [r for r in self.records if r.user_id == user_id]
        return sorted(owned, key=lambda r: r.created_at, reverse=True)


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def store(upload_dir):
    return TemporaryFileStore(upload_dir)


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def client():
    return FakeTranscriptionClient()


@pytest.fixture
def repository():
    return FakeRepository()


def staged_files(upload_dir):
    if not upload_dir.exists():
        return []
    return list(upload_dir.iterdir())
