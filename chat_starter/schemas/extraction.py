"""Output schema for the structured-output workflow."""

from typing import Literal

from pydantic import BaseModel, Field


class Extraction(BaseModel):
    """Should always be used to properly format output."""

    tone: Literal["positive", "negative", "neutral"] = Field("neutral", description="The overall tone of the input")
    entity: str = Field("entity", description="The entity mentioned in the input")
    word_count: int = Field(0, description="The number of words in the input")
    chat_response: str = Field("chat_response", description="A response to the human's input")
    final_punctuation: str | None = Field(None, description="The final punctuation mark in the input, if any.")
