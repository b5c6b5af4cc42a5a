"""LLM provider adapters.

Three streaming implementations of ILLMProvider (src/interfaces/llm_provider.py):
    - AnthropicLLMProvider -- Claude via the Messages streaming API
    - OpenAILLMProvider    -- gpt-4o-mini, or any OpenAI-compatible host
    - OllamaLLMProvider    -- local models via an Ollama server

main.py builds the first configured one (Anthropic -> OpenAI -> Ollama) and
hands it to the QA service.
"""

from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.ollama_provider import OllamaLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider", "AnthropicLLMProvider", "OllamaLLMProvider"]
