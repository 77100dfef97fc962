"""Format-specific transpiler implementations."""

from msgbridge.core.interface.transpilers.messages import MessagesTranspiler
from msgbridge.core.interface.transpilers.openai import OpenAITranspiler

__all__ = ["MessagesTranspiler", "OpenAITranspiler"]
