# llm/__init__.py
"""
LLM Components Package

- intent_parser: keyword rules mapping chat input to intents
- prompts: assistant prompt template and knowledge summary
- credential_pool: rotating generation API keys
- dispatcher: generation with credential failover
"""

from .credential_pool import CredentialPool
from .dispatcher import (
    UpstreamDispatcher,
    GenerationClient,
    OpenAIGenerationClient,
    is_retryable,
    FALLBACK_MESSAGE,
    FALLBACK_SUGGESTIONS
)
from .intent_parser import IntentParser, intent_parser, classify
from .prompts import ASSISTANT_PROMPT, TICKET_TYPE_LABELS, build_assistant_prompt, render_knowledge_summary

__all__ = [
    "CredentialPool",
    "UpstreamDispatcher",
    "GenerationClient",
    "OpenAIGenerationClient",
    "is_retryable",
    "FALLBACK_MESSAGE",
    "FALLBACK_SUGGESTIONS",
    "IntentParser",
    "intent_parser",
    "classify",
    "ASSISTANT_PROMPT",
    "TICKET_TYPE_LABELS",
    "build_assistant_prompt",
    "render_knowledge_summary"
]
