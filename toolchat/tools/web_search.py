"""
Web Search Tool

Simulated web search. Returns canned results that echo the query.
"""

import logging

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class WebSearchInput(BaseModel):
    query: str = Field(description="Search keyword or phrase")


def search(query: str) -> dict:
    """
    Search the web (simulated).

    Args:
        query: The search query

    Returns:
        Dictionary with the query, a list of ``{title, snippet}`` results
        and ``totalResults``.
    """
    results = [
        {
            "title": f"Results for: {query}",
            "snippet": "This is a simulated search result...",
        },
        {
            "title": f"More information: {query}",
            "snippet": "Here you can find more information about the topic...",
        },
    ]
    return {"query": query, "results": results, "totalResults": len(results)}


def _handle_search(params: WebSearchInput) -> dict:
    result = search(params.query)
    logger.info("Search for '%s' found %d results", params.query, result["totalResults"])
    return result


def _register():
    from .registry import ToolRegistry

    ToolRegistry.register(
        name="web-search",
        description=(
            "Search for information on the web. Use when the user asks something "
            "that requires additional information."
        ),
        input_model=WebSearchInput,
        handler=_handle_search,
    )


_register()
