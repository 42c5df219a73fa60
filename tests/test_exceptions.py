from __future__ import annotations

from utils.exceptions import (
    CardNotFoundError,
    ErrorKind,
    FatalStepError,
    MissingDataError,
    PipelineError,
    RetryableStepError,
    decode_retryable,
    encode_retryable,
)


def test_encode_uses_family_prefix() -> None:
    error = RetryableStepError(
        ErrorKind.RATE_LIMIT,
        "HTTP 429",
        step_family="linkMetadata",
        normalized_url="https://example.com",
    )
    encoded = encode_retryable(error)

    assert encoded.startswith("workflow:linkMetadata:retryable:{")
    decoded = decode_retryable(encoded, "linkMetadata")
    assert decoded.kind == ErrorKind.RATE_LIMIT
    assert decoded.message == "HTTP 429"
    assert decoded.normalized_url == "https://example.com"


def test_decode_without_family_reads_prefix() -> None:
    decoded = decode_retryable('workflow:metadata:retryable:{"type":"timeout","details":{"attempt":2}}')

    assert decoded.step_family == "metadata"
    assert decoded.kind == ErrorKind.TIMEOUT
    assert decoded.message == "timeout"
    assert decoded.details == {"attempt": 2}


def test_decode_rejects_other_messages() -> None:
    assert decode_retryable("boom") is None
    assert decode_retryable("workflow:metadata:retryable:{}", "linkMetadata") is None
    assert decode_retryable("workflow::retryable:{}") is None


def test_invalid_payload_decodes_to_error_kind() -> None:
    decoded = decode_retryable("workflow:metadata:retryable:not-json", "metadata")

    assert decoded.kind == ErrorKind.ERROR
    assert decoded.message == "not-json"


def test_unknown_kind_falls_back_to_error() -> None:
    assert RetryableStepError("weird").kind == ErrorKind.ERROR


def test_str_includes_details() -> None:
    error = PipelineError("Failed", {"url": "https://example.com"})
    assert str(error) == "Failed | Details: {'url': 'https://example.com'}"
    assert str(PipelineError("Failed")) == "Failed"


def test_fatal_kinds() -> None:
    missing = CardNotFoundError("card_9")

    assert isinstance(missing, FatalStepError)
    assert missing.kind == ErrorKind.INVALID_CARD
    assert missing.card_id == "card_9"
    assert MissingDataError("no bytes").kind == ErrorKind.MISSING_DATA
    assert FatalStepError("bad", kind=ErrorKind.TIMEOUT).kind == ErrorKind.TIMEOUT
    assert not isinstance(missing, RetryableStepError)
