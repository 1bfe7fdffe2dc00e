"""Utils module for the brand profile pipeline."""

from brand_profile.utils.logger import LogContext, get_logger, setup_logging
from brand_profile.utils.retry import (
    AppError,
    InputError,
    ModelOutputError,
    ModelResponseParseError,
    PipelineError,
    TransientInferenceFailure,
    attempt_with_fallback,
    categorize_error,
)
from brand_profile.utils.formatters import render_template, truncate_text

__all__ = [
    "get_logger",
    "setup_logging",
    "LogContext",
    "AppError",
    "InputError",
    "ModelOutputError",
    "ModelResponseParseError",
    "PipelineError",
    "TransientInferenceFailure",
    "attempt_with_fallback",
    "categorize_error",
    "render_template",
    "truncate_text",
]
