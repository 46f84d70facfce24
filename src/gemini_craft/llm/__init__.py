"""Request building, transport and response parsing for gemini-craft."""

from gemini_craft.llm.client import GeminiClient
from gemini_craft.llm.connection import ConnectionBuilder, StreamingConnectionBuilder
from gemini_craft.llm.payload import PayloadBuilder
from gemini_craft.llm.response_parser import (
    ContentExtractor,
    FunctionResponseProcessor,
    ResponseHandler,
    StreamingProcessor,
)

__all__ = [
    "ConnectionBuilder",
    "ContentExtractor",
    "FunctionResponseProcessor",
    "GeminiClient",
    "PayloadBuilder",
    "ResponseHandler",
    "StreamingConnectionBuilder",
    "StreamingProcessor",
]
