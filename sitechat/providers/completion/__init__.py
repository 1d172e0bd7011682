"""Chat completion provider adapters.

    - OpenAICompletionProvider - gpt-4o-mini by default, whole or streamed.
"""

from sitechat.providers.completion.openai_completion_provider import OpenAICompletionProvider

__all__ = ["OpenAICompletionProvider"]
