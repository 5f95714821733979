"""
Knowledge feature: Agent tool for on-demand passage retrieval.
A LangChain tool the conversation graph can call between model steps.
"""

import json
import logging

from fastapi.concurrency import run_in_threadpool
from langchain_core.tools import BaseTool, tool
from pydantic import BaseModel, Field

from app.features.knowledge.service import SEARCH_TOOL_NAME, RetrievalService

logger = logging.getLogger(__name__)


class SearchGitaContextInput(BaseModel):
    query: str = Field(
        description=(
            "The search query - use Gita concepts (perseverance, detachment, duty, karma, "
            "dharma, etc.) even if the user's question is about modern topics. Map their "
            "situation to universal Gita teachings."
        )
    )
    k: int = Field(
        default=5,
        description="Number of passages to retrieve (1-10)",
        json_schema_extra={"minimum": 1, "maximum": 10},
    )


def create_search_tool(retriever: RetrievalService) -> BaseTool:
    """Create the search tool bound to a RetrievalService instance."""

    @tool(SEARCH_TOOL_NAME, args_schema=SearchGitaContextInput)
    async def search_gita_context(query: str, k: int = 5) -> str:
        """Search the Bhagavad Gita knowledge base for relevant passages, verses, and shlokas.
        Use this when you need more context. IMPORTANT: If the user's question seems
        specific (like coding, work, etc.), search for related Gita concepts like
        'perseverance', 'detachment from results', 'duty and action', 'overcoming
        obstacles', 'karma yoga', etc. The Gita addresses all human experiences through
        universal principles.
        """
        logger.info(f"search_gita_context: query={query!r} k={k}")
        result = await run_in_threadpool(retriever.retrieve_for_tool, query, k)
        logger.info(f"search_gita_context: {len(result.passages)} passages")
        return json.dumps(result.to_payload(), ensure_ascii=False)

    return search_gita_context
