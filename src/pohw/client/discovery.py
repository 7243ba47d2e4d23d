from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from ..api.models import NodeInfo, NodeStatus
from ..errors import NetworkFailure, NotFound, PohwError, RegistryRejected
from ..settings import settings
from .registry import raise_for_registry, translate_errors

DEFAULT_NODES = (
    NodeInfo(
        id="gdn-primary",
        name="gdn.sh (Primary)",
        url="https://gdn.sh",
        operator="PoHW Foundation",
        verified=True,
        primary=True,
    ),
    NodeInfo(
        id="production-railway",
        name="Production (Railway)",
        url="https://pohw-registry-node-production.up.railway.app",
        operator="PoHW Foundation",
        verified=True,
    ),
)


class RegistryDiscovery:
    """Known registry nodes plus an optional remote node list, probed concurrently."""

    def __init__(
        self,
        known_nodes: Optional[list[NodeInfo]] = None,
        discovery_url: Optional[str] = None,
        http: Optional[httpx.AsyncClient] = None,
        api_prefix: Optional[str] = None,
    ):
        self.known_nodes: list[NodeInfo] = list(DEFAULT_NODES if known_nodes is None else known_nodes)
        self.discovery_url = settings.discovery_url if discovery_url is None else discovery_url
        self.api_prefix = settings.api_prefix if api_prefix is None else api_prefix
        self._http = http
        for url in settings.extra_node_urls():
            self.add_custom_node(url)

    async def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient()
        return self._http

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()

    async def _fetch_remote_nodes(self) -> list[NodeInfo]:
        client = await self._client()
        with translate_errors(self.discovery_url):
            resp = await client.get(
                self.discovery_url,
                headers={"Accept": "application/json"},
                timeout=settings.status_timeout_seconds,
            )
        raise_for_registry(resp)
        raw = resp.json()
        if not isinstance(raw, list):
            return []
        nodes = []
        for entry in raw:
            if not isinstance(entry, dict):
                continue
            entry = {"id": f"remote-{uuid.uuid4().hex[:8]}", "name": entry.get("url", ""), **entry}
            try:
                nodes.append(NodeInfo.model_validate(entry))
            except ValidationError as e:
                logging.debug("Skipping malformed discovered node %r: %s", entry, e)
        return nodes

    async def discover_nodes(self) -> list[NodeInfo]:
        nodes = list(self.known_nodes)
        if not self.discovery_url:
            return nodes
        try:
            remote = await self._fetch_remote_nodes()
        except (PohwError, ValueError) as e:
            logging.info("Discovery service not available (%s); using known nodes", e)
            return nodes
        seen = {n.url for n in nodes}
        for node in remote:
            if node.url not in seen:
                nodes.append(node)
                seen.add(node.url)
        return nodes

    async def check_node_status(self, node_url: str) -> dict[str, Any]:
        client = await self._client()
        url = f"{node_url.rstrip('/')}{self.api_prefix}/status"
        with translate_errors(node_url):
            resp = await client.get(url, headers={"Accept": "application/json"}, timeout=settings.status_timeout_seconds)
        raise_for_registry(resp)
        data = resp.json()
        if not isinstance(data, dict):
            raise RegistryRejected(resp.status_code, "Status response is not an object")
        return data

    async def _probe(self, node: NodeInfo) -> NodeStatus:
        start = time.perf_counter()
        try:
            status = await self.check_node_status(node.url)
        except (NetworkFailure, RegistryRejected, NotFound, ValueError) as e:
            logging.warning("Status check failed for %s: %s", node.url, e)
            return NodeStatus(**node.model_dump(), status="offline", active=False, error=str(e))
        elapsed = (time.perf_counter() - start) * 1000
        state = str(status.get("status") or "unknown")
        total = status.get("total_proofs")
        return NodeStatus(
            **node.model_dump(),
            status=state,
            active=state == "active",
            latest_hash=status.get("latest_hash"),
            timestamp=status.get("timestamp"),
            total_proofs=total if isinstance(total, int) else None,
            response_time_ms=elapsed,
        )

    async def check_all_nodes_status(self) -> list[NodeStatus]:
        """Probe every node concurrently; one unreachable node only degrades its own entry."""
        nodes = await self.discover_nodes()
        return list(await asyncio.gather(*(self._probe(n) for n in nodes)))

    def default_registry(self) -> str:
        for n in self.known_nodes:
            if n.primary:
                return n.url
        return self.known_nodes[0].url if self.known_nodes else settings.registry_url

    def add_custom_node(self, url: str, name: Optional[str] = None) -> NodeInfo:
        url = url.rstrip("/")
        for n in self.known_nodes:
            if n.url == url:
                return n
        node = NodeInfo(id=f"custom-{uuid.uuid4().hex[:8]}", name=name or url, url=url, operator="Custom")
        self.known_nodes.append(node)
        return node

    def remove_custom_node(self, url: str) -> None:
        url = url.rstrip("/")
        self.known_nodes = [n for n in self.known_nodes if not (n.url == url and n.operator == "Custom")]
