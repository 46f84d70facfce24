"""gemini-craft: cached, streaming client for the Gemini generateContent API."""

from gemini_craft.cache import Cache, CacheEntry, CacheKeyGenerator
from gemini_craft.config import GeminiConfig, load_config
from gemini_craft.errors import ErrorKind, GeminiCraftError
from gemini_craft.llm.client import GeminiClient
from gemini_craft.types import CacheStats, FunctionCall, FunctionCallResult

__version__ = "0.1.0"

__all__ = [
    "Cache",
    "CacheEntry",
    "CacheKeyGenerator",
    "CacheStats",
    "ErrorKind",
    "FunctionCall",
    "FunctionCallResult",
    "GeminiClient",
    "GeminiConfig",
    "GeminiCraftError",
    "load_config",
]
