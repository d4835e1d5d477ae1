"""HTTP endpoints exposing the web search aggregator and the SearxNG proxy."""

from __future__ import annotations

from typing import Annotated, List

from fastapi import APIRouter, Depends, Query, Request

from chatsearch.routes.auth import require_token
from chatsearch.schemas.search import (
    SearchResponse,
    SearchResultModel,
    SearchType,
    SearxNGCategory,
    SearxNGResponse,
)
from chatsearch.services.search import SearchAggregator, SearchOptions, SearxNGClient
from chatsearch.utils.errors import BadRequest

router = APIRouter(
    prefix="/api/v1/search",
    tags=["search"],
    dependencies=[Depends(require_token)],
)


def get_aggregator(request: Request) -> SearchAggregator:
    """Return the aggregator built by :func:`chatsearch.app.create_app`."""
    return request.app.state.search_aggregator


def get_searxng_client(request: Request) -> SearxNGClient:
    """Return the shared SearxNG client stored on the application state."""
    return request.app.state.searxng_client


AggregatorDep = Annotated[SearchAggregator, Depends(get_aggregator)]
SearxNGDep = Annotated[SearxNGClient, Depends(get_searxng_client)]


@router.get(
    "",
    response_model=SearchResponse,
    summary="Web search with provider fallback",
    description=(
        "Query SerpAPI and fall back to Tavily when SerpAPI fails or returns nothing. "
        "Provider failures never surface: the worst case is an empty result list."
    ),
)
async def search(
    aggregator: AggregatorDep,
    q: Annotated[str, Query(min_length=1, description="User search query")],
    num_results: Annotated[int, Query(ge=1, le=50)] = 10,
    search_type: SearchType = "web",
    language: Annotated[str, Query(min_length=2, max_length=10)] = "en",
) -> SearchResponse:
    """Run the aggregated search and wrap the hits in :class:`SearchResponse`."""
    options = SearchOptions(num_results=num_results, search_type=search_type, language=language)
    results = await aggregator.search(q, options)
    items: List[SearchResultModel] = [
        SearchResultModel(title=r.title, link=r.link, snippet=r.snippet, source=r.source)
        for r in results
    ]
    return SearchResponse(query=q, search_type=search_type, results=items)


@router.get(
    "/searxng",
    response_model=SearxNGResponse,
    response_model_exclude_unset=True,
    summary="Categorized search through SearxNG",
    description="Proxy the query to the configured SearxNG instance and return its body.",
)
async def searxng(
    client: SearxNGDep,
    q: Annotated[str, Query(min_length=1, description="User search query")],
    category: SearxNGCategory = "general",
) -> SearxNGResponse:
    """Proxy to SearxNG; invalid input is a 400, upstream trouble a 502."""
    try:
        return await client.search(q, category)
    except ValueError as exc:
        raise BadRequest(str(exc)) from exc


__all__ = ["router", "search", "searxng"]
