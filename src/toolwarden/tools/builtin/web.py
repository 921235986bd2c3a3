"""Web tools: HTTP fetch and web search.

Both are READ_ONLY and go through httpx. ``fetch_url`` returns the status
code, content type and a size-capped body. ``web_search`` queries the Brave
Search API with the key from BRAVE_SEARCH_API_KEY. Transport failures
propagate as httpx errors and are reported as network failures.
"""

from __future__ import annotations

import os
import re
from typing import Any

import httpx

from toolwarden.core.models import RiskClass
from toolwarden.exceptions import ToolExecutionError
from toolwarden.tools.models import ToolDefinition

DEFAULT_MAX_BYTES = 32768
REQUEST_TIMEOUT = 15.0
USER_AGENT = "toolwarden (agentic command executor)"

SEARCH_ENDPOINT = "https://api.search.brave.com/res/v1/web/search"
SEARCH_API_KEY_ENV = "BRAVE_SEARCH_API_KEY"
DEFAULT_SEARCH_RESULTS = 5
_HTML_TAG = re.compile(r"<[^>]+>")


def web_tools(transport: httpx.AsyncBaseTransport | None = None) -> list[ToolDefinition]:
    """The web tools. ``transport`` lets tests substitute a mock transport."""

    async def _fetch_url(args: dict[str, Any]) -> dict[str, Any]:
        url = args["url"]
        if not url.startswith(("http://", "https://")):
            raise ToolExecutionError("fetch_url", "network", f"Unsupported URL scheme: {url}")
        max_bytes = args.get("max_bytes", DEFAULT_MAX_BYTES)

        async with httpx.AsyncClient(
            transport=transport,
            timeout=REQUEST_TIMEOUT,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            response = await client.get(url)

        body = response.text
        truncated = len(body) > max_bytes
        if truncated:
            body = body[:max_bytes]
        return {
            "url": str(response.url),
            "status_code": response.status_code,
            "content_type": response.headers.get("content-type", ""),
            "body": body,
            "truncated": truncated,
        }

    async def _web_search(args: dict[str, Any]) -> dict[str, Any]:
        api_key = os.environ.get(SEARCH_API_KEY_ENV)
        if not api_key:
            raise ToolExecutionError(
                "web_search",
                "permission",
                f"Missing API key for Brave Search. Set {SEARCH_API_KEY_ENV}.",
            )
        count = args.get("num_results", DEFAULT_SEARCH_RESULTS)

        async with httpx.AsyncClient(
            transport=transport,
            timeout=REQUEST_TIMEOUT,
            headers={
                "User-Agent": USER_AGENT,
                "Accept": "application/json",
                "X-Subscription-Token": api_key,
            },
        ) as client:
            response = await client.get(
                SEARCH_ENDPOINT, params={"q": args["query"], "count": count}
            )

        if response.is_error:
            raise ToolExecutionError(
                "web_search",
                "network",
                f"Search API returned {response.status_code}: {response.text[:200]}",
                details={"status_code": response.status_code},
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise ToolExecutionError(
                "web_search", "network", f"Search API returned invalid JSON: {e}"
            ) from e

        hits = (payload.get("web") or {}).get("results") or []
        results = [
            {
                "title": hit.get("title") or "",
                "url": hit.get("url") or "",
                "snippet": _HTML_TAG.sub("", hit.get("description") or "").strip(),
            }
            for hit in hits[:count]
            if hit.get("url")
        ]
        return {"query": args["query"], "results": results}

    return [
        ToolDefinition(
            name="fetch_url",
            description=(
                "Fetch a URL with HTTP GET. Returns status code, content type "
                "and the response body (truncated to max_bytes)."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "url": {"type": "string", "description": "http(s) URL", "minLength": 1},
                    "max_bytes": {"type": "integer", "minimum": 1, "maximum": 1048576},
                },
                "required": ["url"],
                "additionalProperties": False,
            },
            risk_class=RiskClass.READ_ONLY,
            handler=_fetch_url,
        ),
        ToolDefinition(
            name="web_search",
            description=(
                "Search the web with the Brave Search API. Returns title, url "
                f"and snippet for each result. Requires {SEARCH_API_KEY_ENV}."
            ),
            parameter_schema={
                "type": "object",
                "properties": {
                    "query": {"type": "string", "description": "The search query", "minLength": 1},
                    "num_results": {
                        "type": "integer",
                        "description": f"Maximum results to return (default {DEFAULT_SEARCH_RESULTS})",
                        "minimum": 1,
                        "maximum": 20,
                    },
                },
                "required": ["query"],
                "additionalProperties": False,
            },
            risk_class=RiskClass.READ_ONLY,
            handler=_web_search,
        ),
    ]
