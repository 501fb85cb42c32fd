"""Tools offered to the reasoning step.

Each tool has a pydantic argument model; its JSON schema is what the model
sees, and the same model validates the arguments the model sends back.
"""

from typing import NamedTuple
from uuid import UUID

from pydantic import BaseModel, Field

from memobot.conversation.models import ConversationState
from memobot.providers.llm import ToolDefinition

NEW_MEMORY_BUTTON = {"id": "new_memory", "title": "New Memory"}
SAVE_MEMORY_BUTTON = {"id": "save_memory", "title": "Save Memory"}


# ============================================================================
# Search & retrieval
# ============================================================================


class SearchMemoriesArgs(BaseModel):
    query: str = Field(..., min_length=1, description="Natural language search query")
    limit: int | None = Field(
        default=None, description="Maximum number of memories to return (default 6, max 10)"
    )
    include_related: bool = Field(
        default=True, description="Include related memories from the memory network"
    )


class GetMemoryByIdArgs(BaseModel):
    memory_id: UUID = Field(..., description="UUID of the memory to retrieve")


class ListRecentMemoriesArgs(BaseModel):
    limit: int = Field(default=5, description="Number of memories to return (default 5, max 20)")
    category: str | None = Field(default=None, description="Optional category name filter")


class ListCategoriesArgs(BaseModel):
    pass


class ListTagsArgs(BaseModel):
    limit: int = Field(default=20, description="Number of tags to return (default 20, max 50)")


# ============================================================================
# Memory creation
# ============================================================================


class StartMemoryCaptureArgs(BaseModel):
    initial_content: str | None = Field(
        default=None, description="Content the user already provided"
    )


class AddToMemoryDraftArgs(BaseModel):
    content: str = Field(..., min_length=1, description="Content to add to the memory")
    is_answer_to_question: bool = Field(
        default=False, description="Whether this answers a follow-up question"
    )


class GenerateMemoryDraftArgs(BaseModel):
    request_confirmation: bool = Field(
        default=True, description="Whether the user will be asked to confirm"
    )


class FinalizeMemoryArgs(BaseModel):
    title: str | None = Field(default=None, description="Title override")
    category_override: str | None = Field(default=None, description="Category name override")
    tags_override: list[str] | None = Field(default=None, description="Tag names override")


class CancelMemoryDraftArgs(BaseModel):
    pass


# ============================================================================
# Memory management
# ============================================================================


class UpdateMemoryArgs(BaseModel):
    memory_id: UUID = Field(..., description="UUID of the memory to update")
    title: str | None = Field(default=None, description="New title")
    summary: str | None = Field(default=None, description="New summary")
    content: str | None = Field(default=None, description="New content")
    category: str | None = Field(default=None, description="New category name")
    tags: list[str] | None = Field(default=None, description="New tag names")


class DeleteMemoryArgs(BaseModel):
    memory_id: UUID = Field(..., description="UUID of the memory to delete")


# ============================================================================
# Session
# ============================================================================


class GetSessionStateArgs(BaseModel):
    pass


class SetSessionStateArgs(BaseModel):
    state: ConversationState = Field(..., description="The new conversation state")


class ToolSpec(NamedTuple):
    description: str
    arguments: type[BaseModel]


TOOL_SPECS: dict[str, ToolSpec] = {
    "search_memories": ToolSpec(
        "Search the user's memories using natural language. Use when the user asks "
        "about past memories or wants to recall something.",
        SearchMemoriesArgs,
    ),
    "get_memory_by_id": ToolSpec(
        "Retrieve a specific memory by its ID with full details.",
        GetMemoryByIdArgs,
    ),
    "list_recent_memories": ToolSpec(
        "List the user's most recent memories, optionally within one category.",
        ListRecentMemoriesArgs,
    ),
    "list_categories": ToolSpec(
        "List the user's categories with descriptions and memory counts.",
        ListCategoriesArgs,
    ),
    "list_tags": ToolSpec(
        "List the user's most used tags.",
        ListTagsArgs,
    ),
    "start_memory_capture": ToolSpec(
        "Begin creating a new memory. Call as soon as the user wants to save something.",
        StartMemoryCaptureArgs,
    ),
    "add_to_memory_draft": ToolSpec(
        "Add content to the memory being captured.",
        AddToMemoryDraftArgs,
    ),
    "generate_memory_draft": ToolSpec(
        "Assemble the captured content into a draft with title, summary, category and tags.",
        GenerateMemoryDraftArgs,
    ),
    "finalize_memory": ToolSpec(
        "Save the memory. Categorizes, tags, embeds and links it to related memories.",
        FinalizeMemoryArgs,
    ),
    "cancel_memory_draft": ToolSpec(
        "Cancel the memory being captured and discard the draft.",
        CancelMemoryDraftArgs,
    ),
    "update_memory": ToolSpec(
        "Edit a saved memory.",
        UpdateMemoryArgs,
    ),
    "delete_memory": ToolSpec(
        "Delete a memory. Always confirm with the user before calling this.",
        DeleteMemoryArgs,
    ),
    "get_session_state": ToolSpec(
        "Get the conversation state and the memory draft in progress.",
        GetSessionStateArgs,
    ),
    "set_session_state": ToolSpec(
        "Change the conversation state.",
        SetSessionStateArgs,
    ),
}


def tool_definitions() -> list[ToolDefinition]:
    """Definitions of every tool, in a stable order."""
    return [
        ToolDefinition(
            name=name,
            description=spec.description,
            parameters=spec.arguments.model_json_schema(),
        )
        for name, spec in TOOL_SPECS.items()
    ]
