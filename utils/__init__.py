"""
Utils Module
"""
from .logger import setup_logger, get_logger, configure_pipeline_logging
from .exceptions import (
    PipelineError,
    ConfigurationError,
    ScraperError,
    ErrorKind,
    RetryableStepError,
    FatalStepError,
    CardNotFoundError,
    InvalidCardError,
    MissingDataError,
    encode_retryable,
    decode_retryable,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "configure_pipeline_logging",
    "PipelineError",
    "ConfigurationError",
    "ScraperError",
    "ErrorKind",
    "RetryableStepError",
    "FatalStepError",
    "CardNotFoundError",
    "InvalidCardError",
    "MissingDataError",
    "encode_retryable",
    "decode_retryable",
]
