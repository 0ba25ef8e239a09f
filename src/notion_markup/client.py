"""Async Notion API access: appending blocks, creating pages, resolving refs.

Token: set once at startup via `set_token` (see `server.main`).
"""

import asyncio
import logging
import random
import re
from typing import Optional

import httpx

from .blocks import Block, blocks_to_notion

logger = logging.getLogger("notion-markup.client")

NOTION_API_BASE = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"

# Notion accepts at most 100 children per append request
MAX_BLOCKS_PER_REQUEST = 100

# =============================================================================
# Async Rate Limiting
# =============================================================================

# Notion averages ~3 requests/second per integration
_notion_semaphore: Optional[asyncio.Semaphore] = None
_async_client: Optional[httpx.AsyncClient] = None

MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0  # seconds
RETRY_JITTER_MAX = 0.5  # seconds


def _compute_retry_delay(attempt: int, retry_after: float | None = None) -> float:
    """Exponential backoff delay with jitter.

    Args:
        attempt: Current retry attempt number (0-indexed).
        retry_after: Optional Retry-After header value from server.

    Returns:
        Delay in seconds.
    """
    base_delay = RETRY_BASE_DELAY * (2 ** attempt)
    if retry_after is not None:
        base_delay = max(retry_after, base_delay)
    return base_delay + random.uniform(0, RETRY_JITTER_MAX)


def _http_error_detail(e: httpx.HTTPStatusError, max_len: int = 300) -> str:
    """Truncated response body of an HTTP status error."""
    if e.response is not None:
        return e.response.text[:max_len]
    return str(e)


def _get_semaphore() -> asyncio.Semaphore:
    global _notion_semaphore
    if _notion_semaphore is None:
        _notion_semaphore = asyncio.Semaphore(3)
    return _notion_semaphore


async def _get_async_client() -> httpx.AsyncClient:
    global _async_client
    if _async_client is None or _async_client.is_closed:
        _async_client = httpx.AsyncClient(timeout=30.0)
    return _async_client


# =============================================================================
# Credential Management
# =============================================================================

_notion_token: Optional[str] = None


def set_token(token: Optional[str]) -> None:
    global _notion_token
    _notion_token = token


def _get_token() -> str:
    """Get the Notion token (set via --token-file or NOTION_TOKEN)."""
    if _notion_token is None:
        raise RuntimeError(
            "No Notion token. Pass --token-file <path> or set NOTION_TOKEN."
        )
    return _notion_token


# =============================================================================
# Page References
# =============================================================================

UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{12}$',
    re.IGNORECASE
)
NOTION_URL_PATTERN = re.compile(
    r'https?://(?:www\.)?notion\.(?:so|site)/(?:[^/]+/)?([^?#]+)',
    re.IGNORECASE
)


class PageNotFoundError(LookupError):
    """No page matches the given reference."""

    def __init__(self, ref: str):
        super().__init__(f"Could not find page with identifier: {ref}")
        self.ref = ref


def normalize_uuid(uuid_str: str) -> str:
    """Normalize a UUID to standard format with dashes.

    Raises:
        ValueError: If input is not a valid UUID.
    """
    clean = uuid_str.replace('-', '').lower()
    if len(clean) != 32:
        raise ValueError(f"Invalid UUID length: {uuid_str}")
    if not all(c in '0123456789abcdef' for c in clean):
        raise ValueError(f"Invalid UUID characters: {uuid_str}")
    return f"{clean[:8]}-{clean[8:12]}-{clean[12:16]}-{clean[16:20]}-{clean[20:]}"


def extract_uuid_from_url(url: str) -> Optional[str]:
    """Extract a page UUID from a Notion URL.

    Handles `notion.so/<id>`, `notion.so/Page-Title-<id>` and
    `notion.so/workspace/Page-Title-<id>`.

    Returns:
        Normalized UUID or None if not found.
    """
    match = NOTION_URL_PATTERN.match(url)
    if not match:
        return None
    # The ID closes the path, possibly after a title slug
    uuid_match = re.search(
        r'([0-9a-f]{8}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{12})$',
        match.group(1),
        re.IGNORECASE
    )
    if not uuid_match:
        return None
    return normalize_uuid(uuid_match.group(1))


def get_page_title(page: dict) -> str:
    """Plain-text title of a page object."""
    for prop in page.get("properties", {}).values():
        if prop.get("type") == "title":
            return "".join(t.get("plain_text", "") for t in prop.get("title", []))
    return ""


# =============================================================================
# Requests
# =============================================================================

async def _notion_request_async(
    method: str,
    endpoint: str,
    json_body: Optional[dict] = None
) -> dict:
    """Make authenticated async request to Notion API with rate limiting and retry.

    Raises:
        httpx.HTTPStatusError: Non-2xx response, including a 429 that
            persisted through every retry.
    """
    token = _get_token()
    sem = _get_semaphore()
    client = await _get_async_client()

    headers = {
        "Authorization": f"Bearer {token}",
        "Notion-Version": NOTION_VERSION,
        "Content-Type": "application/json",
    }
    url = f"{NOTION_API_BASE}{endpoint}"

    async with sem:
        for attempt in range(MAX_RETRIES):
            if method == "GET":
                response = await client.get(url, headers=headers)
            elif method == "POST":
                response = await client.post(url, headers=headers, json=json_body or {})
            elif method == "PATCH":
                response = await client.patch(url, headers=headers, json=json_body or {})
            else:
                raise ValueError(f"Unsupported method: {method}")

            if response.status_code == 429 and attempt < MAX_RETRIES - 1:
                retry_after = float(response.headers.get("Retry-After", RETRY_BASE_DELAY))
                delay = _compute_retry_delay(attempt, retry_after)
                logger.warning(f"Rate limited, waiting {delay:.1f}s (attempt {attempt + 1})")
                await asyncio.sleep(delay)
                continue

            response.raise_for_status()
            return response.json()

    raise RuntimeError(f"Max retries ({MAX_RETRIES}) exceeded")


def _batches(items: list, size: int = MAX_BLOCKS_PER_REQUEST) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]


async def append_blocks_async(parent_id: str, blocks: list[Block]) -> list[dict]:
    """Append blocks under a page or block, in request-sized batches.

    Batches are sent one after another so the blocks keep their order.

    Returns:
        Created block objects, in order.
    """
    payload = blocks_to_notion(blocks)
    created: list[dict] = []
    for batch in _batches(payload):
        result = await _notion_request_async(
            "PATCH",
            f"/blocks/{parent_id}/children",
            json_body={"children": batch}
        )
        created.extend(result.get("results", []))
    logger.info(f"Appended {len(created)} blocks to {parent_id}")
    return created


async def create_page_async(parent_id: str, title: str, blocks: list[Block]) -> dict:
    """Create a child page with the given blocks as its content.

    The first batch of blocks is sent with the page; the rest is appended.
    """
    payload = blocks_to_notion(blocks)
    first, rest = payload[:MAX_BLOCKS_PER_REQUEST], payload[MAX_BLOCKS_PER_REQUEST:]
    body = {
        "parent": {"page_id": parent_id},
        "properties": {
            "title": {"title": [{"type": "text", "text": {"content": title}}]}
        },
        "children": first,
    }
    page = await _notion_request_async("POST", "/pages", json_body=body)
    for batch in _batches(rest):
        await _notion_request_async(
            "PATCH",
            f"/blocks/{page['id']}/children",
            json_body={"children": batch}
        )
    logger.info(f"Created page {page['id']} with {len(payload)} blocks")
    return page


async def search_pages_async(query: str, limit: int = 10) -> list[dict]:
    """Search pages by title, most recently edited first."""
    body = {
        "query": query,
        "page_size": max(1, min(limit, 100)),
        "filter": {"property": "object", "value": "page"},
        "sort": {"direction": "descending", "timestamp": "last_edited_time"},
    }
    result = await _notion_request_async("POST", "/search", json_body=body)
    return result.get("results", [])


async def resolve_page_id_async(ref: str) -> str:
    """Resolve a page reference to a page UUID.

    Args:
        ref: Page UUID (with or without dashes), Notion page URL, or a title
            to search for.

    Raises:
        PageNotFoundError: If a title search finds nothing.
    """
    ref = ref.strip()
    if UUID_PATTERN.match(ref):
        return normalize_uuid(ref)

    if ref.startswith("http"):
        uuid = extract_uuid_from_url(ref)
        if uuid:
            return uuid
        raise PageNotFoundError(ref)

    results = await search_pages_async(ref, limit=10)
    if not results:
        raise PageNotFoundError(ref)

    # Prefer an exact (case-insensitive) title match over the first hit
    for page in results:
        if get_page_title(page).strip().lower() == ref.lower():
            return normalize_uuid(page["id"])
    return normalize_uuid(results[0]["id"])


async def check_credentials_async() -> bool:
    """Whether the configured token is accepted by Notion."""
    if not _notion_token:
        return False
    try:
        await _notion_request_async("GET", "/users/me")
    except httpx.HTTPStatusError as e:
        if e.response.status_code in (401, 403):
            return False
        raise
    return True
