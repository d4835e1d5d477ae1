"""Pydantic models for the web search and SearxNG endpoints."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

SearchType = Literal["web", "news", "places"]
SearxNGCategory = Literal["general", "images", "videos", "news"]


class SearchResultModel(BaseModel):
    """Single hit returned by the aggregated search endpoint."""

    title: str = Field(..., description="Result title as provided by the upstream provider.")
    link: str = Field(..., description="URL of the resource.")
    snippet: str = Field(..., description="Short text excerpt describing the result.")
    source: Literal["serpapi", "tavily"] = Field(
        ..., description="Provider that answered the query."
    )


class SearchResponse(BaseModel):
    """Envelope returned by ``GET /api/v1/search``."""

    query: str
    search_type: SearchType = "web"
    results: List[SearchResultModel] = Field(default_factory=list)


class SearxNGResult(BaseModel):
    """Raw SearxNG hit; fields not declared here are preserved untouched.

    Engines leave fields out or send ``null``; dump with ``exclude_unset=True``
    to get back exactly the keys the instance answered with.
    """

    model_config = ConfigDict(extra="allow")

    title: str | None = None
    url: str | None = None
    content: str | None = None
    img_src: str | None = None
    thumbnail: str | None = None


class SearxNGResponse(BaseModel):
    """Body returned by ``<searxng>/search?format=json``."""

    model_config = ConfigDict(extra="allow")

    results: List[SearxNGResult] = Field(default_factory=list)
    query: str | None = None
    number_of_results: int | float = 0


__all__ = [
    "SearchResponse",
    "SearchResultModel",
    "SearchType",
    "SearxNGCategory",
    "SearxNGResponse",
    "SearxNGResult",
]
