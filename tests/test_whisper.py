"""
Tests for the OpenAI transcription client.

Covers:
- Request shape (filename, content type, model, language)
- Blank transcripts
- Retry of rate limits, connection errors and 5xx
- No retry on 4xx, with status and body surfaced
"""

from unittest.mock import MagicMock

import pytest
from openai import APIConnectionError, APIStatusError, RateLimitError

from engine.errors import EmptyTranscript, TranscriptionServiceError
from engine.whisper import MAX_FILE_SIZE_BYTES, OpenAITranscriber, guess_content_type

from conftest import OPENAI_REQUEST, http_response


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def transcriber(client):
    return OpenAITranscriber(api_key="", client=client, max_retries=3, backoff_seconds=0)


class TestContentType:
    @pytest.mark.parametrize("filename", ["note.webm", "blob", "", "notes.txt"])
    def test_defaults_to_webm(self, filename):
        assert guess_content_type(filename) == "audio/webm"

    @pytest.mark.parametrize("filename", ["note.wav", "note.mp3", "note.ogg"])
    def test_known_audio_extensions(self, filename):
        assert guess_content_type(filename).startswith("audio/")


class TestTranscribe:
    def test_returns_stripped_text(self, transcriber, client):
        client.audio.transcriptions.create.return_value = "  Buy milk tomorrow.  \n"
        assert transcriber.transcribe(b"audio", "note.webm") == "Buy milk tomorrow."

    def test_request_shape(self, transcriber, client):
        client.audio.transcriptions.create.return_value = "hello"
        transcriber.transcribe(b"audio-bytes", "note.webm")
        kwargs = client.audio.transcriptions.create.call_args.kwargs
        assert kwargs["file"] == ("note.webm", b"audio-bytes", "audio/webm")
        assert kwargs["model"] == "whisper-1"
        assert kwargs["language"] == "en"
        assert kwargs["response_format"] == "text"

    def test_blank_transcript(self, transcriber, client):
        client.audio.transcriptions.create.return_value = "   "
        with pytest.raises(EmptyTranscript):
            transcriber.transcribe(b"audio", "note.webm")

    def test_oversize_payload_rejected_before_upload(self, transcriber, client):
        with pytest.raises(TranscriptionServiceError):
            transcriber.transcribe(b"\0" * (MAX_FILE_SIZE_BYTES + 1), "big.wav")
        client.audio.transcriptions.create.assert_not_called()

    def test_unsupported_model(self):
        with pytest.raises(ValueError):
            OpenAITranscriber(api_key="sk-test", model="tiny")


class TestRetries:
    def test_connection_error_then_success(self, transcriber, client):
        client.audio.transcriptions.create.side_effect = [
            APIConnectionError(request=OPENAI_REQUEST),
            "hello",
        ]
        assert transcriber.transcribe(b"audio", "note.webm") == "hello"
        assert client.audio.transcriptions.create.call_count == 2

    def test_rate_limit_retried(self, transcriber, client):
        client.audio.transcriptions.create.side_effect = [
            RateLimitError("slow down", response=http_response(429), body=None),
            "hello",
        ]
        assert transcriber.transcribe(b"audio", "note.webm") == "hello"

    def test_client_error_not_retried(self, transcriber, client):
        client.audio.transcriptions.create.side_effect = APIStatusError(
            "bad request", response=http_response(400, "Invalid file format."), body=None
        )
        with pytest.raises(TranscriptionServiceError) as exc_info:
            transcriber.transcribe(b"audio", "note.webm")
        assert exc_info.value.status_code == 400
        assert exc_info.value.body == "Invalid file format."
        assert client.audio.transcriptions.create.call_count == 1

    def test_server_error_exhausts_retries(self, transcriber, client):
        client.audio.transcriptions.create.side_effect = APIStatusError(
            "server error", response=http_response(503, "overloaded"), body=None
        )
        with pytest.raises(TranscriptionServiceError) as exc_info:
            transcriber.transcribe(b"audio", "note.webm")
        assert exc_info.value.status_code == 503
        assert client.audio.transcriptions.create.call_count == 3
