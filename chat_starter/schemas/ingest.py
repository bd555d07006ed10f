"""Schemas for the ingestion endpoint."""

from typing import Any

from pydantic import BaseModel, Field


class IngestRequest(BaseModel):
    """Raw text to split, embed and store."""

    text: str = Field(..., description="Document text.")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Copied onto every stored chunk.")

    model_config = {
        "json_schema_extra": {
            "examples": [{"text": "The sky is blue.", "metadata": {"source": "facts.txt"}}]
        }
    }


class IngestResponse(BaseModel):
    """Response after storing chunks in the vector store."""

    chunks_ingested: int = Field(..., description="Number of chunks stored.")
    ids: list[Any] = Field(default_factory=list, description="Vector store ids of the stored chunks.")
