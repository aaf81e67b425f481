import asyncio

import pytest

from conftest import (
    ALICE,
    FakeRepository,
    FakeTranscriptionClient,
    FakeVerifier,
    deepgram_payload,
    make_upload,
    staged_files,
)
from voice2text.core.exceptions import TranscriptionError
from voice2text.transcription.client import RecognitionOptions
from voice2text.transcription.pipeline import ErrorKind, PipelineState, TranscriptionPipeline


@pytest.fixture
def pipeline(store, verifier, client, repository):
    return TranscriptionPipeline(store, verifier, client, repository, RecognitionOptions())


async def test_success_stores_one_record_and_removes_upload(pipeline, client, repository, upload_dir):
    result = await pipeline.run(make_upload(b"abc123", "memo.wav", "audio/wav"), "Bearer alice-token")

    assert result.ok
    assert result.state is PipelineState.COMPLETED
    assert result.response.transcript == "hello world"
    assert result.response.user_id == ALICE
    assert result.response.filename.endswith("-memo.wav")
    assert result.response.message == "Transcription successful"

    assert len(repository.records) == 1
    record = repository.records[0]
    assert record.user_id == ALICE
    assert record.filename == result.response.filename
    assert record.transcript == "hello world"

    audio, mime_type, options = client.calls[0]
    assert audio == b"abc123"
    assert mime_type == "audio/wav"
    assert options == RecognitionOptions(model="nova-2", smart_format=True)

    assert staged_files(upload_dir) == []


async def test_missing_file_touches_no_collaborator(pipeline, verifier, client, repository, upload_dir):
    result = await pipeline.run(None, "Bearer alice-token")

    assert result.state is PipelineState.REJECTED_NO_FILE
    assert result.failure.kind is ErrorKind.NO_FILE
    assert "audio" in result.failure.message
    assert verifier.calls == []
    assert client.calls == []
    assert repository.insert_calls == 0
    assert staged_files(upload_dir) == []


async def test_file_without_name_counts_as_missing(pipeline, verifier):
    result = await pipeline.run(make_upload(filename=""), "Bearer alice-token")

    assert result.state is PipelineState.REJECTED_NO_FILE
    assert verifier.calls == []


async def test_text_field_counts_as_missing(pipeline, verifier, upload_dir):
    result = await pipeline.run("not-a-file", "Bearer alice-token")

    assert result.state is PipelineState.REJECTED_NO_FILE
    assert result.failure.message == "No audio file in request (field name must be 'audio')."
    assert verifier.calls == []
    assert staged_files(upload_dir) == []


@pytest.mark.parametrize(
    "authorization, message",
    [
        (None, "Missing Authorization header (Bearer <token> required)."),
        ("", "Missing Authorization header (Bearer <token> required)."),
        ("Bearer", "Malformed Authorization header."),
        ("Bearer   ", "Malformed Authorization header."),
        ("Token alice-token", "Malformed Authorization header."),
        ("Bearer wrong-token", "Invalid or expired auth token."),
        ("Bearer explode", "Invalid or expired auth token."),
    ],
)
async def test_bad_auth_deletes_upload(pipeline, client, repository, upload_dir, authorization, message):
    result = await pipeline.run(make_upload(), authorization)

    assert result.state is PipelineState.REJECTED_BAD_AUTH
    assert result.failure.kind is ErrorKind.BAD_AUTH
    assert result.failure.message == message
    assert client.calls == []
    assert repository.insert_calls == 0
    assert staged_files(upload_dir) == []


async def test_upstream_exception_creates_no_record(store, verifier, repository, upload_dir):
    client = FakeTranscriptionClient(error=TranscriptionError("Deepgram returned status 401: Invalid credentials"))
    pipeline = TranscriptionPipeline(store, verifier, client, repository)

    result = await pipeline.run(make_upload(), "Bearer alice-token")

    assert result.state is PipelineState.TRANSCRIPTION_FAILED
    assert result.failure.kind is ErrorKind.UPSTREAM
    assert result.failure.message == "Transcription failed."
    assert result.failure.error == "Deepgram returned status 401: Invalid credentials"
    assert repository.insert_calls == 0
    assert staged_files(upload_dir) == []


async def test_error_shaped_payload_is_a_failure(store, verifier, repository, upload_dir):
    client = FakeTranscriptionClient(payload={"err_code": "Bad Request", "err_msg": "corrupt audio"})
    pipeline = TranscriptionPipeline(store, verifier, client, repository)

    result = await pipeline.run(make_upload(), "Bearer alice-token")

    assert result.state is PipelineState.TRANSCRIPTION_FAILED
    assert result.failure.error == "corrupt audio"
    assert repository.records == []
    assert staged_files(upload_dir) == []


async def test_persistence_failure_is_reported_and_cleaned(store, verifier, client, upload_dir):
    repository = FakeRepository(fail_insert=True)
    pipeline = TranscriptionPipeline(store, verifier, client, repository)

    result = await pipeline.run(make_upload(), "Bearer alice-token")

    assert result.state is PipelineState.PERSISTENCE_FAILED
    assert result.failure.kind is ErrorKind.STORAGE
    assert result.failure.message == "Failed to save transcription to DB."
    assert repository.records == []
    assert staged_files(upload_dir) == []


async def test_unexpected_shape_persists_empty_transcript(store, verifier, repository, upload_dir):
    client = FakeTranscriptionClient(payload={"metadata": {}, "results": {"channels": []}})
    pipeline = TranscriptionPipeline(store, verifier, client, repository)

    result = await pipeline.run(make_upload(), "Bearer alice-token")

    assert result.ok
    assert result.response.transcript == ""
    assert repository.records[0].transcript == ""
    assert staged_files(upload_dir) == []


@pytest.mark.parametrize("payload", [[], "weird"])
async def test_non_object_payload_persists_empty_transcript(store, verifier, repository, upload_dir, payload):
    client = FakeTranscriptionClient(payload=payload)
    pipeline = TranscriptionPipeline(store, verifier, client, repository)

    result = await pipeline.run(make_upload(), "Bearer alice-token")

    assert result.ok
    assert result.response.transcript == ""
    assert repository.records[0].transcript == ""
    assert staged_files(upload_dir) == []


async def test_unexpected_error_becomes_internal_error(pipeline, store, repository, upload_dir, monkeypatch):
    async def broken_read(audio):
        raise OSError("disk went away")

    monkeypatch.setattr(store, "read_bytes", broken_read)

    result = await pipeline.run(make_upload(), "Bearer alice-token")

    assert result.state is PipelineState.INTERNAL_ERROR
    assert result.failure.kind is ErrorKind.INTERNAL
    assert result.failure.message == "Internal server error"
    assert "disk went away" not in (result.failure.error or "")
    assert repository.insert_calls == 0
    assert staged_files(upload_dir) == []


async def test_cleanup_runs_exactly_once(pipeline, store, monkeypatch):
    deleted = []
    original_delete = store.delete

    async def counting_delete(audio):
        deleted.append(audio.filename)
        return await original_delete(audio)

    monkeypatch.setattr(store, "delete", counting_delete)

    result = await pipeline.run(make_upload(), "Bearer alice-token")

    assert result.ok
    assert deleted == [result.response.filename]


async def test_failed_cleanup_does_not_change_outcome(pipeline, store, monkeypatch):
    async def failing_delete(audio):
        return False

    monkeypatch.setattr(store, "delete", failing_delete)

    result = await pipeline.run(make_upload(), "Bearer alice-token")

    assert result.ok


async def test_raising_cleanup_does_not_change_outcome(pipeline, store, repository, monkeypatch, caplog):
    async def broken_delete(audio):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(store, "delete", broken_delete)

    result = await pipeline.run(make_upload(), "Bearer alice-token")

    assert result.ok
    assert result.state is PipelineState.COMPLETED
    assert len(repository.records) == 1
    assert "Failed to delete file" in caplog.text


async def test_raising_cleanup_keeps_failure_outcome(pipeline, store, monkeypatch):
    async def broken_delete(audio):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(store, "delete", broken_delete)

    result = await pipeline.run(make_upload(), "Bearer nope")

    assert result.state is PipelineState.REJECTED_BAD_AUTH
    assert result.failure.kind is ErrorKind.BAD_AUTH


async def test_two_alternatives_fallback_is_joined(store, repository):
    client = FakeTranscriptionClient(payload=deepgram_payload("", "a", "b"))
    pipeline = TranscriptionPipeline(store, FakeVerifier(), client, repository)

    result = await pipeline.run(make_upload(), "Bearer alice-token")

    assert result.response.transcript == "a b"


async def test_concurrent_uploads_do_not_collide(pipeline, repository, upload_dir):
    results = await asyncio.gather(
        *[pipeline.run(make_upload(filename="same.wav"), "Bearer alice-token") for _ in range(5)]
    )

    filenames = {r.response.filename for r in results}
    assert len(filenames) == 5
    assert len(repository.records) == 5
    assert staged_files(upload_dir) == []
