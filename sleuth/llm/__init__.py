"""
LLM providers module.

This module contains LLM model implementations:
- Model: Abstract base class
- ProviderModel: Base for remote chat APIs (client setup, logging, retries)
- OpenAIModel: OpenAI and compatible endpoints
- AnthropicModel: Anthropic Claude models
- normalize_usage: provider usage -> TokenUsage
"""

from .anthropic import AnthropicModel
from .base import Model, ModelResponse, ProviderModel, StreamChunk
from .openai import OpenAIModel
from .usage import normalize_usage

__all__ = [
    "Model",
    "ModelResponse",
    "ProviderModel",
    "StreamChunk",
    "OpenAIModel",
    "AnthropicModel",
    "normalize_usage",
]
