"""MCP JSON-RPC tool provider over httpx.

Talks to an MCP server exposing ``POST {base_url}/api/mcp`` with the
``initialize``, ``tools/list`` and ``tools/call`` methods. The provider's tool
list is authoritative; the local catalog file adds category tags and worked
examples.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
import time
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import ValidationError

from ..domain.domain_type import ErrorCategory
from ..domain.errors import ToolExecutionError, classify_error_message, classify_status_code
from ..domain.tool_catalog import ToolCatalog, ToolCatalogEntry, ToolSchema

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"


def unwrap_content(result: Any) -> Any:
    """Turn an MCP ``tools/call`` result into plain data.

    Text content items holding JSON are decoded; a single item is returned
    on its own. Results without a ``content`` list pass through unchanged.
    """
    if not isinstance(result, Mapping) or not isinstance(result.get("content"), list):
        return result
    values: list[Any] = []
    for item in result["content"]:
        if isinstance(item, Mapping) and item.get("type") == "text":
            text = item.get("text", "")
            try:
                values.append(json.loads(text))
            except json.JSONDecodeError:
                values.append(text)
        else:
            values.append(item)
    if len(values) == 1:
        return values[0]
    return values


class McpToolProvider:
    """``ToolProvider`` port over MCP JSON-RPC.

    Args:
        base_url: Server root; requests go to ``{base_url}/api/mcp``
        local_catalog: Category/example overlay for the remote tool list
        timeout: Per-request timeout in seconds
        catalog_ttl: Seconds the merged catalog is reused before re-listing
        client: Pre-built httpx client (tests inject a MockTransport here)
    """

    def __init__(
        self,
        base_url: str,
        *,
        local_catalog: ToolCatalog,
        timeout: float = 30.0,
        catalog_ttl: float = 300.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._local_catalog = local_catalog
        self._catalog_ttl = catalog_ttl
        self._client = client or httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/api",
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()
        self._initialized = False
        self._catalog: ToolCatalog | None = None
        self._catalog_loaded_at = 0.0

    async def _rpc(self, method: str, params: Mapping[str, Any] | None = None, *, label: str | None = None) -> Any:
        label = label or method
        payload: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": next(self._ids), "method": method}
        if params is not None:
            payload["params"] = dict(params)

        try:
            response = await self._client.post("/mcp", json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            raise ToolExecutionError(label, f"request timed out: {exc}", ErrorCategory.TIMEOUT) from exc
        except httpx.HTTPStatusError as exc:
            raise ToolExecutionError(
                label, f"HTTP {exc.response.status_code}", classify_status_code(exc.response.status_code)
            ) from exc
        except httpx.HTTPError as exc:
            raise ToolExecutionError(label, f"transport error: {exc}", ErrorCategory.NETWORK) from exc
        except json.JSONDecodeError as exc:
            raise ToolExecutionError(label, "response is not JSON") from exc

        error = body.get("error") if isinstance(body, Mapping) else None
        if error:
            message = error.get("message", str(error)) if isinstance(error, Mapping) else str(error)
            raise ToolExecutionError(label, f"MCP error: {message}", classify_error_message(message))
        return body.get("result") if isinstance(body, Mapping) else None

    async def initialize(self) -> None:
        async with self._lock:
            if self._initialized:
                return
            info = await self._rpc("initialize")
            logger.info("MCP server initialized: %s", info)
            self._initialized = True

    async def list_tools(self) -> ToolCatalog:
        """Remote tool list merged with the local catalog (cached for ``catalog_ttl``)."""
        if self._catalog is not None and time.monotonic() - self._catalog_loaded_at < self._catalog_ttl:
            return self._catalog

        await self.initialize()
        result = await self._rpc("tools/list")
        entries: list[ToolCatalogEntry] = []
        for tool in (result or {}).get("tools", []):
            if any(entry.name == tool.get("name") for entry in entries):
                logger.warning("Ignoring duplicate tool definition %r", tool.get("name"))
                continue
            try:
                entries.append(
                    ToolCatalogEntry(
                        name=tool["name"],
                        description=tool.get("description") or "",
                        parameters=ToolSchema.model_validate(tool.get("inputSchema") or {}),
                    )
                )
            except (KeyError, ValidationError) as exc:
                logger.warning("Skipping malformed tool definition %r: %s", tool.get("name"), exc)

        self._catalog = self._local_catalog.merge_remote(entries)
        self._catalog_loaded_at = time.monotonic()
        logger.info("MCP catalog loaded: %d tools", len(self._catalog))
        return self._catalog

    async def call_tool(self, name: str, arguments: Mapping[str, Any]) -> Any:
        await self.initialize()
        logger.debug("Calling tool %s with %s", name, arguments)
        result = await self._rpc("tools/call", {"name": name, "arguments": dict(arguments)}, label=name)
        value = unwrap_content(result)
        if isinstance(result, Mapping) and result.get("isError"):
            message = value if isinstance(value, str) else json.dumps(value, default=str)
            raise ToolExecutionError(name, message, classify_error_message(message))
        return value

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["McpToolProvider", "unwrap_content"]
