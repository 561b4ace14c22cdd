"""Tool endpoints exposing embedding operations to agent runtimes.

Each tool mirrors an HTTP operation but always answers 200 with an envelope:
``{"success": true, "data": ...}`` or ``{"success": false, "error": ...}``.
"""

import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel, Field, TypeAdapter, ValidationError
import structlog

from ..encoders.embedding_manager import EmbeddingManager
from ..models import Chunk
from .routes import get_embedding_manager

logger = structlog.get_logger("embedding_service.tools")

router = APIRouter(prefix="/tools", tags=["tools"])

_chunk_list = TypeAdapter(List[Chunk])


class ToolEnvelope(BaseModel):
    """Uniform tool result."""
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None


class ToolDescription(BaseModel):
    name: str
    description: str
    arguments: Dict[str, str] = Field(default_factory=dict)


class ToolArgumentError(ValueError):
    """Tool arguments failed validation."""


class EmbeddingTools:
    """Tool handlers bound to one ``EmbeddingManager``."""

    descriptions = [
        ToolDescription(
            name="generate_embeddings",
            description="Generate vector embeddings for a list of text chunks.",
            arguments={"chunks": "List of chunks (or a JSON array string)"},
        ),
        ToolDescription(
            name="generate_embedding",
            description="Generate a single vector embedding for text content.",
            arguments={"text": "Text content to embed"},
        ),
        ToolDescription(
            name="get_embedding_status",
            description="Get the embedding generation status for a document.",
            arguments={"document_id": "Document ID (UUID)"},
        ),
    ]

    def __init__(self, embedding_manager: EmbeddingManager):
        self.embedding_manager = embedding_manager
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]] = {
            "generate_embeddings": self.generate_embeddings,
            "generate_embedding": self.generate_embedding,
            "get_embedding_status": self.get_embedding_status,
        }

    async def invoke(self, tool_name: str, arguments: Dict[str, Any]) -> ToolEnvelope:
        handler = self._handlers.get(tool_name)
        if handler is None:
            return ToolEnvelope(success=False, error=f"Unknown tool: {tool_name}")

        logger.info("Tool called", tool=tool_name)
        try:
            return ToolEnvelope(success=True, data=await handler(arguments))
        except ToolArgumentError as e:
            return ToolEnvelope(success=False, error=str(e))
        except Exception as e:
            logger.error("Tool call failed", tool=tool_name, error=str(e))
            return ToolEnvelope(success=False, error=str(e))

    async def generate_embeddings(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        raw = arguments.get("chunks")
        try:
            if isinstance(raw, str):
                chunks = _chunk_list.validate_json(raw)
            else:
                chunks = _chunk_list.validate_python(raw or [])
        except ValidationError as e:
            raise ToolArgumentError(f"Invalid chunks: {e.error_count()} validation error(s)")
        if not chunks:
            raise ToolArgumentError("No chunks provided")

        embeddings = await self.embedding_manager.generate_embeddings(chunks)
        return {
            "embeddings": [embedding.model_dump(mode="json") for embedding in embeddings],
            "count": len(embeddings),
        }

    async def generate_embedding(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        text = arguments.get("text")
        if not isinstance(text, str) or not text.strip():
            raise ToolArgumentError("Text content is required")

        embedding = await self.embedding_manager.generate_embedding(text)
        return {"embedding": embedding.model_dump(mode="json")}

    async def get_embedding_status(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        try:
            document_id = uuid.UUID(str(arguments.get("document_id")))
        except ValueError:
            raise ToolArgumentError("Invalid document ID format")

        status = self.embedding_manager.get_status(document_id)
        return {"status": status.model_dump(mode="json")}


def get_tools(embedding_manager: EmbeddingManager = Depends(get_embedding_manager)) -> EmbeddingTools:
    return EmbeddingTools(embedding_manager)


@router.get("", response_model=List[ToolDescription])
async def list_tools():
    """Describe the available tools."""
    return EmbeddingTools.descriptions


@router.post("/{tool_name}", response_model=ToolEnvelope, response_model_exclude_none=True)
async def call_tool(
    tool_name: str,
    arguments: Optional[Dict[str, Any]] = Body(None),
    tools: EmbeddingTools = Depends(get_tools)
):
    """Invoke a tool; failures are reported in the envelope, not the status code."""
    return await tools.invoke(tool_name, arguments or {})
