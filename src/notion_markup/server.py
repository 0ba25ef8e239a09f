"""MCP server exposing hybrid-markup writing tools for Notion.

Tools:
- notion_preview_blocks: Parse markup and show the Notion block JSON
- notion_add_content: Append parsed markup to an existing page
- notion_create_page: Create a child page from parsed markup
- notion_search: Find pages by title
- notion_check_auth: Verify the configured token

Token: Passed via --token-file <path> (or NOTION_TOKEN) at startup.
"""

import json
import logging
import os
from pathlib import Path

import httpx
from mcp.server.fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from . import client
from .blocks import blocks_to_notion, walk_blocks
from .client import (
    PageNotFoundError,
    _http_error_detail,
    append_blocks_async,
    check_credentials_async,
    create_page_async,
    get_page_title,
    resolve_page_id_async,
    search_pages_async,
)
from .parser import parse_content_to_blocks

logger = logging.getLogger("notion-markup")

mcp = FastMCP("notion-markup-mcp")

HTTP_HOST = "127.0.0.1"
HTTP_PORT = 2053


# =============================================================================
# Error Formatting
# =============================================================================

def _error(code: str, message: str, hint: str | None = None, ref: str | None = None) -> str:
    """Format error with optional hint.

    Args:
        code: Error code (e.g., PAGE_NOT_FOUND, EMPTY_CONTENT)
        message: Human-readable description
        hint: Suggestion on how to fix the issue
        ref: The reference that failed (for context)
    """
    parts = [f"error: {code} - {message}"]
    if ref:
        parts.append(f"ref: {ref}")
    if hint:
        parts.append(f"hint: {hint}")
    return "\n".join(parts)


HINTS = {
    "page_not_found": "Use notion_search to find the page by title, or pass its full Notion UUID/URL.",
    "missing_capability": "Share the page with the integration: open in Notion → Share → invite the integration.",
    "rate_limited": "Too many requests. Wait a moment and try again.",
    "invalid_token": "Token is invalid or expired. Check the token file.",
    "empty_content": "Nothing in the content became a block. Check that tags are closed and the text is not only markup.",
}


def _http_failure(e: httpx.HTTPStatusError, ref: str | None = None) -> str:
    status = e.response.status_code
    if status == 401:
        return _error("INVALID_TOKEN", "Token is invalid or expired", hint=HINTS["invalid_token"])
    if status in (403, 404):
        return _error(
            "MISSING_CAPABILITY" if status == 403 else "REF_GONE",
            "Page is missing or not shared with this integration",
            hint=HINTS["missing_capability"],
            ref=ref
        )
    if status == 429:
        return _error("RATE_LIMITED", "Too many requests", hint=HINTS["rate_limited"])
    return _error("HTTP_ERROR", f"HTTP {status}: {_http_error_detail(e, 100)}", ref=ref)


def _summary(blocks) -> str:
    total = sum(1 for _ in walk_blocks(blocks))
    return f"{len(blocks)} top-level blocks ({total} total)"


# =============================================================================
# Tools
# =============================================================================

@mcp.tool()
def notion_preview_blocks(content: str) -> str:
    """Parse content and return the Notion blocks it would create, without writing.

    Args:
        content: Hybrid markup: tags such as <h1>, <callout type="tip">,
            <ul><li>, <code language="python">, mixed with markdown lines.

    Returns:
        JSON array of Notion API block objects.
    """
    blocks = parse_content_to_blocks(content)
    return json.dumps(blocks_to_notion(blocks), indent=2, ensure_ascii=False)


@mcp.tool()
async def notion_add_content(page: str, content: str) -> str:
    """Append content to the end of an existing Notion page.

    Args:
        page: Page UUID, Notion URL, or page title.
        content: Hybrid markup (see notion_preview_blocks).

    Returns:
        Confirmation with the number of blocks written.
    """
    blocks = parse_content_to_blocks(content)
    if not blocks:
        return _error("EMPTY_CONTENT", "No content to add", hint=HINTS["empty_content"])

    try:
        page_id = await resolve_page_id_async(page)
        await append_blocks_async(page_id, blocks)
    except PageNotFoundError as e:
        return _error("PAGE_NOT_FOUND", str(e), hint=HINTS["page_not_found"], ref=page)
    except httpx.HTTPStatusError as e:
        return _http_failure(e, ref=page)
    except Exception as e:
        return _error("UNEXPECTED", f"{type(e).__name__}: {e}")

    return f"added {_summary(blocks)} to page {page_id}"


@mcp.tool()
async def notion_create_page(parent: str, title: str, content: str = "") -> str:
    """Create a new page under a parent page.

    Args:
        parent: Parent page UUID, Notion URL, or page title.
        title: Title of the new page.
        content: Optional hybrid markup for the page body.

    Returns:
        The new page's ID and URL.
    """
    blocks = parse_content_to_blocks(content)
    try:
        parent_id = await resolve_page_id_async(parent)
        new_page = await create_page_async(parent_id, title, blocks)
    except PageNotFoundError as e:
        return _error("PAGE_NOT_FOUND", str(e), hint=HINTS["page_not_found"], ref=parent)
    except httpx.HTTPStatusError as e:
        return _http_failure(e, ref=parent)
    except Exception as e:
        return _error("UNEXPECTED", f"{type(e).__name__}: {e}")

    url = new_page.get("url") or f"https://notion.so/{new_page['id'].replace('-', '')}"
    return f"created page {new_page['id']} with {_summary(blocks)}\nurl: {url}"


@mcp.tool()
async def notion_search(query: str, limit: int = 10) -> str:
    """Search Notion pages by title.

    Args:
        query: Search query (matched against page titles).
        limit: Maximum results to return (default 10, max 100).

    Returns:
        One line per page: UUID and title.
    """
    try:
        results = await search_pages_async(query, limit=limit)
    except httpx.HTTPStatusError as e:
        return _http_failure(e)
    except Exception as e:
        return _error("UNEXPECTED", f"{type(e).__name__}: {e}")

    if not results:
        return f"No results for '{query}'"

    lines = [f"Found {len(results)} page(s) for '{query}':"]
    for page in results:
        icon = page.get("icon") or {}
        icon_str = icon.get("emoji", "") + " " if icon.get("type") == "emoji" else ""
        lines.append(f"{page.get('id', '')}  {icon_str}{get_page_title(page)}")
    return "\n".join(lines)


@mcp.tool()
async def notion_check_auth() -> str:
    """Verify that the configured Notion token is valid."""
    if client._notion_token is None:
        return _error("NO_TOKEN", "No Notion token configured", hint=HINTS["invalid_token"])

    try:
        valid = await check_credentials_async()
    except httpx.HTTPStatusError as e:
        return _http_failure(e)
    except Exception as e:
        return _error("UNEXPECTED", f"{type(e).__name__}: {e}")

    if not valid:
        return _error("INVALID_TOKEN", "Token was rejected by Notion", hint=HINTS["invalid_token"])
    return "authenticated"


# =============================================================================
# HTTP Endpoints (/health)
# =============================================================================

async def health_endpoint(request: Request) -> JSONResponse:
    """Health check endpoint for easy testing."""
    token_loaded = client._notion_token is not None

    authenticated = None
    if token_loaded:
        try:
            authenticated = await check_credentials_async()
        except Exception as e:
            logger.warning(f"Health check auth failed: {type(e).__name__}: {e}")
            authenticated = False

    return JSONResponse({
        "status": "ok",
        "token_loaded": token_loaded,
        "authenticated": authenticated,
    })


# =============================================================================
# Main Entry Point
# =============================================================================

def _load_token(token_file: str | None) -> str:
    if token_file is None:
        token = os.environ.get("NOTION_TOKEN", "").strip()
        if not token:
            logger.error("No token: pass --token-file or set NOTION_TOKEN")
            raise SystemExit(1)
        logger.info("Notion token loaded from NOTION_TOKEN")
        return token

    token_path = Path(token_file).expanduser()
    if not token_path.exists():
        logger.error(f"Token file not found: {token_path}")
        raise SystemExit(1)
    token = token_path.read_text().strip()
    if not token:
        logger.error("Token file is empty")
        raise SystemExit(1)
    logger.info(f"Notion token loaded from {token_path}")
    return token


def main():
    """Run the MCP server.

    Usage:
        notion-markup-mcp --token-file ~/.notion_token          # stdio
        notion-markup-mcp --token-file ~/.notion_token --http   # HTTP on localhost:2053
    """
    import argparse

    parser = argparse.ArgumentParser(description="Notion markup MCP server")
    parser.add_argument(
        "--token-file",
        help="Path to file containing Notion API token (default: NOTION_TOKEN env var)"
    )
    parser.add_argument(
        "--http",
        action="store_true",
        help=f"Run as HTTP server on {HTTP_HOST}:{HTTP_PORT} instead of stdio"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    client.set_token(_load_token(args.token_file))

    if args.http:
        import uvicorn

        app = mcp.streamable_http_app()
        app.add_route("/health", health_endpoint, methods=["GET"])

        logger.info(f"Starting MCP server on http://{HTTP_HOST}:{HTTP_PORT}")
        uvicorn.run(app, host=HTTP_HOST, port=HTTP_PORT, log_level="warning")
    else:
        mcp.run()


if __name__ == "__main__":
    main()
