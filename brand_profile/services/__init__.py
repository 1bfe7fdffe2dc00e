"""
Services package for the brand profile pipeline.

Services:
    - ClaudeService: Text completions using Anthropic Claude
    - HttpFetcher: GET requests with transport retries
    - KnowledgeSourceClient: Wikipedia and Wikidata lookups
    - ValidationService: Input validation
"""

from brand_profile.services.llm_service import (
    ChatCompletion,
    ClaudeService,
    ClaudeServiceError,
    CompletionClient,
    MaxRetriesExceededError,
    TokenUsage,
    parse_json_object,
)
from brand_profile.services.http_service import HttpFetcher, HttpResponse
from brand_profile.services.knowledge_service import KnowledgeSourceClient
from brand_profile.services.validation_service import ValidationService

__all__ = [
    # LLM Service
    "ChatCompletion",
    "ClaudeService",
    "ClaudeServiceError",
    "CompletionClient",
    "MaxRetriesExceededError",
    "TokenUsage",
    "parse_json_object",
    # HTTP
    "HttpFetcher",
    "HttpResponse",
    # Knowledge Source
    "KnowledgeSourceClient",
    # Validation
    "ValidationService",
]
