"""
AI participant - mention detection, context building and the completion call.

Components:
- is_mentioned / ContextBuilder: who is asking and what the AI sees
- CompletionClient: HTTP call to the chat-completions endpoint
- AIPipeline: typing indicator, request, history, meetings and broadcast
"""

from .context import AIContext, ContextBuilder, is_mentioned
from .client import CompletionClient, FALLBACK_RESPONSE
from .pipeline import AIPipeline

__all__ = [
    "AIContext",
    "ContextBuilder",
    "is_mentioned",
    "CompletionClient",
    "FALLBACK_RESPONSE",
    "AIPipeline",
]
