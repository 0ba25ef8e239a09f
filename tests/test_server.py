"""Tests for the MCP tool functions and server entry point (HTTP mocked)."""

import asyncio
import json

import httpx
import pytest

from notion_markup import client, server
from notion_markup.client import PageNotFoundError
from notion_markup.server import (
    HINTS,
    _error,
    notion_add_content,
    notion_check_auth,
    notion_create_page,
    notion_preview_blocks,
    notion_search,
)

PAGE_ID = "12345678-1234-1234-1234-123456789abc"


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("PATCH", "https://api.notion.com/v1/blocks/x/children")
    response = httpx.Response(status, request=request, text="detail")
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


class TestError:
    """Tests for _error formatting."""

    def test_message_only(self):
        assert _error("CODE", "msg") == "error: CODE - msg"

    def test_with_ref_and_hint(self):
        assert _error("CODE", "msg", hint="try this", ref="abc") == "error: CODE - msg\nref: abc\nhint: try this"


class TestPreviewBlocks:
    """Tests for notion_preview_blocks tool."""

    def test_returns_notion_json(self):
        result = json.loads(notion_preview_blocks("<h1>Title</h1>\n- item"))
        assert [b["type"] for b in result] == ["heading_1", "bulleted_list_item"]
        assert result[0]["heading_1"]["rich_text"][0]["text"]["content"] == "Title"

    def test_empty(self):
        assert json.loads(notion_preview_blocks("")) == []


class TestAddContent:
    """Tests for notion_add_content tool."""

    def test_appends_parsed_blocks(self, monkeypatch):
        appended = []

        async def mock_resolve(ref):
            assert ref == "My Page"
            return PAGE_ID

        async def mock_append(parent_id, blocks):
            appended.append((parent_id, blocks))
            return []

        monkeypatch.setattr(server, "resolve_page_id_async", mock_resolve)
        monkeypatch.setattr(server, "append_blocks_async", mock_append)

        result = asyncio.run(notion_add_content("My Page", "<ul><li>a<ul><li>b</li></ul></li></ul>"))

        assert result == f"added 1 top-level blocks (2 total) to page {PAGE_ID}"
        parent_id, blocks = appended[0]
        assert parent_id == PAGE_ID
        assert blocks[0].children[0].block_type == "bulleted_list_item"

    def test_nothing_to_add(self, monkeypatch):
        async def fail(*args):
            raise AssertionError("should not be called")

        monkeypatch.setattr(server, "resolve_page_id_async", fail)
        result = asyncio.run(notion_add_content("My Page", "<div></div>"))
        assert result.startswith("error: EMPTY_CONTENT - No content to add")
        assert HINTS["empty_content"] in result

    def test_page_not_found(self, monkeypatch):
        async def mock_resolve(ref):
            raise PageNotFoundError(ref)

        monkeypatch.setattr(server, "resolve_page_id_async", mock_resolve)
        result = asyncio.run(notion_add_content("Nowhere", "text"))
        assert result.startswith("error: PAGE_NOT_FOUND - Could not find page with identifier: Nowhere")
        assert "ref: Nowhere" in result

    @pytest.mark.parametrize("status,code", [
        (401, "INVALID_TOKEN"),
        (403, "MISSING_CAPABILITY"),
        (404, "REF_GONE"),
        (429, "RATE_LIMITED"),
        (500, "HTTP_ERROR"),
    ])
    def test_http_errors(self, monkeypatch, status, code):
        async def mock_resolve(ref):
            return PAGE_ID

        async def mock_append(parent_id, blocks):
            raise _status_error(status)

        monkeypatch.setattr(server, "resolve_page_id_async", mock_resolve)
        monkeypatch.setattr(server, "append_blocks_async", mock_append)
        result = asyncio.run(notion_add_content(PAGE_ID, "text"))
        assert result.startswith(f"error: {code} - ")


class TestCreatePage:
    """Tests for notion_create_page tool."""

    def test_creates_page(self, monkeypatch):
        async def mock_resolve(ref):
            return PAGE_ID

        async def mock_create(parent_id, title, blocks):
            assert parent_id == PAGE_ID
            assert title == "New"
            assert [b.block_type for b in blocks] == ["paragraph"]
            return {"id": "new-id", "url": "https://www.notion.so/New-newid"}

        monkeypatch.setattr(server, "resolve_page_id_async", mock_resolve)
        monkeypatch.setattr(server, "create_page_async", mock_create)

        result = asyncio.run(notion_create_page(PAGE_ID, "New", "Hello"))
        assert result.startswith("created page new-id with 1 top-level blocks")
        assert "url: https://www.notion.so/New-newid" in result


class TestSearch:
    """Tests for notion_search tool."""

    def test_lists_pages(self, monkeypatch):
        async def mock_search(query, limit=10):
            return [{
                "id": PAGE_ID,
                "icon": {"type": "emoji", "emoji": "📘"},
                "properties": {"title": {"type": "title", "title": [{"plain_text": "Guide"}]}},
            }]

        monkeypatch.setattr(server, "search_pages_async", mock_search)
        result = asyncio.run(notion_search("guide"))
        assert result == f"Found 1 page(s) for 'guide':\n{PAGE_ID}  📘 Guide"

    def test_no_results(self, monkeypatch):
        async def mock_search(query, limit=10):
            return []

        monkeypatch.setattr(server, "search_pages_async", mock_search)
        assert asyncio.run(notion_search("zzz")) == "No results for 'zzz'"


class TestCheckAuth:
    """Tests for notion_check_auth tool."""

    def test_no_token(self, monkeypatch):
        monkeypatch.setattr(client, "_notion_token", None)
        assert asyncio.run(notion_check_auth()).startswith("error: NO_TOKEN")

    def test_valid(self, monkeypatch):
        async def mock_check():
            return True

        monkeypatch.setattr(client, "_notion_token", "secret")
        monkeypatch.setattr(server, "check_credentials_async", mock_check)
        assert asyncio.run(notion_check_auth()) == "authenticated"

    def test_rejected(self, monkeypatch):
        async def mock_check():
            return False

        monkeypatch.setattr(client, "_notion_token", "secret")
        monkeypatch.setattr(server, "check_credentials_async", mock_check)
        assert asyncio.run(notion_check_auth()).startswith("error: INVALID_TOKEN")


class TestLoadToken:
    """Tests for token loading at startup."""

    def test_from_file(self, tmp_path):
        token_file = tmp_path / "token"
        token_file.write_text("secret_abc\n")
        assert server._load_token(str(token_file)) == "secret_abc"

    def test_missing_file(self, tmp_path):
        with pytest.raises(SystemExit):
            server._load_token(str(tmp_path / "missing"))

    def test_empty_file(self, tmp_path):
        token_file = tmp_path / "token"
        token_file.write_text("  \n")
        with pytest.raises(SystemExit):
            server._load_token(str(token_file))

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("NOTION_TOKEN", "env_secret")
        assert server._load_token(None) == "env_secret"

    def test_no_source(self, monkeypatch):
        monkeypatch.delenv("NOTION_TOKEN", raising=False)
        with pytest.raises(SystemExit):
            server._load_token(None)
