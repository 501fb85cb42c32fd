"""Turn-level models of the reasoning loop."""

from uuid import UUID

from pydantic import BaseModel, Field


class SuggestedButton(BaseModel):
    """Quick-reply button offered to the user."""

    id: str = Field(..., description="Button id sent back when tapped")
    title: str = Field(..., description="Button label")


class MemoryCard(BaseModel):
    """Compact view of a memory shown alongside a reply."""

    id: UUID = Field(..., description="Memory ID")
    title: str | None = Field(default=None, description="Memory title")
    content_preview: str = Field(default="", description="Bounded content preview")


class Attachment(BaseModel):
    """File sent with a message, with content extracted upstream."""

    id: str | None = Field(default=None, description="Attachment id in the file store")
    file_name: str = Field(..., description="Original file name")
    file_type: str = Field(..., description="MIME type")
    extracted_content: str | None = Field(default=None, description="Extracted text")

    def as_context(self) -> str:
        """Annotation appended to the user's message."""
        if self.extracted_content:
            return (
                f'[Attached file: "{self.file_name}" ({self.file_type}). '
                f"Extracted content: {self.extracted_content}]"
            )
        return f'[Attached file: "{self.file_name}" ({self.file_type})]'


class TurnResult(BaseModel):
    """Outcome of processing one user message."""

    reply: str = Field(..., description="Text sent back to the user")
    retrieved_memories: list[MemoryCard] = Field(
        default_factory=list, description="Memories found by searches, deduplicated"
    )
    created_memory: MemoryCard | None = Field(default=None, description="Memory saved this turn")
    suggested_buttons: list[SuggestedButton] = Field(
        default_factory=list, description="Buttons for the next message"
    )
    model: str | None = Field(default=None, description="Reasoning model used, if any")
    iterations: int = Field(default=0, ge=0, description="Reasoning calls made")
