"""
Custom Exceptions

Pipeline failures are either retryable (the retry runner re-invokes the step)
or fatal (the step records a failed stage and its branch halts).
"""
import json
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    INVALID_CARD = "invalid_card"
    AWAITING_CLASSIFICATION = "awaiting_classification"
    RATE_LIMIT = "rate_limit"
    SCRAPE_ERROR = "scrape_error"
    HTTP_ERROR = "http_error"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    MISSING_DATA = "missing_data"
    ERROR = "error"


def _kind(value: Any) -> ErrorKind:
    try:
        return ErrorKind(value)
    except ValueError:
        return ErrorKind.ERROR


class PipelineError(Exception):
    """Base error for the card pipeline."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(PipelineError):
    """Invalid or missing configuration"""
    pass


class ScraperError(PipelineError):
    """Collaborator setup failure in a scraper"""

    def __init__(self, message: str, source: str = None, **kwargs):
        super().__init__(message, kwargs)
        self.source = source


class RetryableStepError(PipelineError):
    """A transient failure the retry layer should re-attempt."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str = "",
        *,
        step_family: str = "pipeline",
        normalized_url: Optional[str] = None,
        details: dict = None,
    ):
        self.kind = _kind(kind)
        self.step_family = step_family
        self.normalized_url = normalized_url
        super().__init__(message or self.kind.value, details)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.kind.value, "message": self.message}
        if self.normalized_url:
            payload["normalizedUrl"] = self.normalized_url
        if self.details:
            payload["details"] = self.details
        return payload


class FatalStepError(PipelineError):
    """A terminal failure recorded on the stage; never retried."""

    kind = ErrorKind.ERROR

    def __init__(self, message: str, details: dict = None, kind: ErrorKind = None):
        if kind is not None:
            self.kind = _kind(kind)
        super().__init__(message, details)


class CardNotFoundError(FatalStepError):
    kind = ErrorKind.INVALID_CARD

    def __init__(self, card_id: str):
        super().__init__(f"Card {card_id} not found", {"card_id": card_id})
        self.card_id = card_id


class InvalidCardError(FatalStepError):
    kind = ErrorKind.INVALID_CARD


class MissingDataError(FatalStepError):
    kind = ErrorKind.MISSING_DATA


RETRYABLE_PREFIX_TEMPLATE = "workflow:{family}:retryable:"


def encode_retryable(error: RetryableStepError) -> str:
    """Serialize for transports that only carry an error message string."""
    prefix = RETRYABLE_PREFIX_TEMPLATE.format(family=error.step_family)
    return prefix + json.dumps(error.to_payload(), ensure_ascii=False, default=str)


def decode_retryable(message: str, step_family: Optional[str] = None) -> Optional[RetryableStepError]:
    """Inverse of ``encode_retryable``. Returns None for non-retryable messages.

    Without ``step_family`` any ``workflow:<family>:retryable:`` prefix is
    accepted. A payload that is not valid JSON decodes to kind ``error`` with
    the raw payload as message.
    """
    text = str(message or "")
    if step_family is not None:
        prefix = RETRYABLE_PREFIX_TEMPLATE.format(family=step_family)
        if not text.startswith(prefix):
            return None
        family = step_family
    else:
        if not text.startswith("workflow:"):
            return None
        family, sep, _ = text[len("workflow:"):].partition(":retryable:")
        if not sep or not family:
            return None
        prefix = RETRYABLE_PREFIX_TEMPLATE.format(family=family)

    payload_text = text[len(prefix):]
    try:
        payload = json.loads(payload_text)
        if not isinstance(payload, dict):
            raise ValueError("payload is not an object")
    except ValueError:
        payload = {"type": ErrorKind.ERROR.value, "message": payload_text}

    details = payload.get("details")
    return RetryableStepError(
        payload.get("type", ErrorKind.ERROR.value),
        payload.get("message") or "",
        step_family=family,
        normalized_url=payload.get("normalizedUrl"),
        details=details if isinstance(details, dict) else None,
    )
