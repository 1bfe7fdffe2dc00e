"""
Validation service for pipeline inputs.

Checks the site address and caller options a profile run starts from,
and derives a brand name from the host when the model did not supply one.
"""

import re
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

from pydantic import ValidationError as PydanticValidationError

from brand_profile.models.schemas import PipelineParams
from brand_profile.utils.logger import get_logger
from brand_profile.utils.retry import InputError

logger = get_logger(__name__)

UNKNOWN_BRAND = "Unknown Brand"

# Host labels that never name the brand itself
GENERIC_HOST_LABELS = frozenset({"www", "www1", "www2", "www3", "web", "home", "m", "en"})

# Second-level labels of country suffixes such as bbc.co.uk
COUNTRY_SUFFIX_LABELS = frozenset({"co", "com", "org", "net", "ac", "gov"})


class ValidationService:
    """Validates inputs before any remote call is made."""

    HOST_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9\-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9\-]*[a-z0-9])?)*$", re.IGNORECASE)

    def validate_base_url(self, base_url: Any) -> str:
        """
        Validate the site address of a profile run.

        Args:
            base_url: Caller-supplied address

        Returns:
            The address, stripped of surrounding whitespace

        Raises:
            InputError: If the address is missing or not an http(s) URL with a host
        """
        if not isinstance(base_url, str) or not base_url.strip():
            raise InputError("brand-profile: context.baseURL is required")

        candidate = base_url.strip()
        parts = urlsplit(candidate)
        host = parts.hostname or ""

        if parts.scheme not in ("http", "https") or not host or not self.HOST_PATTERN.match(host):
            logger.error("Invalid base URL", base_url=candidate)
            raise InputError(
                f"brand-profile: context.baseURL is not a valid http(s) URL: {candidate}",
                details={"base_url": candidate},
            )

        return candidate

    def validate_params(self, params: Optional[Mapping[str, Any]]) -> tuple[dict[str, Any], PipelineParams]:
        """
        Normalize caller options.

        Returns:
            The raw options as a plain dict (forwarded to the base-profile
            prompt) and their parsed ``PipelineParams``

        Raises:
            InputError: If the options are not a mapping or a known option
                has the wrong type
        """
        try:
            raw_params = dict(params or {})
            return raw_params, PipelineParams.model_validate(raw_params)
        except (PydanticValidationError, TypeError, ValueError) as e:
            logger.error("Invalid pipeline params", error=str(e))
            raise InputError(
                "brand-profile: invalid params",
                details={"error": str(e), "params_type": type(params).__name__},
            ) from e

    def brand_name_from_url(self, base_url: str) -> str:
        """
        Derive a display brand name from a site address.

        The top-level domain is dropped, together with a second-level label
        such as ``co`` in front of a country code. The first remaining label
        that is not generic is capitalized.

        Example:
            >>> ValidationService().brand_name_from_url("https://www.testcompany.com")
            'Testcompany'
            >>> ValidationService().brand_name_from_url("https://www.bbc.co.uk")
            'Bbc'
        """
        host = self._hostname(base_url)
        if not host:
            return UNKNOWN_BRAND

        labels = host.split(".")
        candidates = labels[:-1] if len(labels) > 1 else labels
        if len(labels) > 2 and len(labels[-1]) == 2 and candidates[-1] in COUNTRY_SUFFIX_LABELS:
            candidates = candidates[:-1]

        for label in candidates:
            if label in GENERIC_HOST_LABELS:
                continue
            return label.capitalize()

        return UNKNOWN_BRAND

    @staticmethod
    def _hostname(base_url: str) -> Optional[str]:
        if "://" not in base_url:
            base_url = f"https://{base_url}"
        try:
            return (urlsplit(base_url).hostname or "").lower() or None
        except ValueError:
            return None


__all__ = ["ValidationService", "UNKNOWN_BRAND", "GENERIC_HOST_LABELS", "COUNTRY_SUFFIX_LABELS"]
