import asyncio

import httpx

from pohw.api.models import NodeInfo
from pohw.client.discovery import DEFAULT_NODES, RegistryDiscovery

DISCOVERY = "https://directory.test/nodes.json"
NODE_A = NodeInfo(id="a", name="A", url="https://node-a.test", operator="Ops", primary=True)


def _handler(request):
    url = str(request.url)
    if url == DISCOVERY:
        return httpx.Response(200, json=[
            {"url": "https://node-b.test/", "name": "B"},
            {"url": "https://node-a.test"},
            "garbage",
        ])
    if url == "https://node-a.test/pohw/status":
        return httpx.Response(200, json={
            "status": "active",
            "latest_hash": "0x" + "aa" * 32,
            "timestamp": "2024-05-01T10:00:00.000Z",
            "total_proofs": 42,
        })
    raise httpx.ConnectError("unreachable", request=request)


def _discovery(handler=_handler, discovery_url=DISCOVERY):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RegistryDiscovery(known_nodes=[NODE_A], discovery_url=discovery_url, http=http, api_prefix="/pohw")


def _run(coro_fn):
    async def _main():
        d = _discovery()
        try:
            return await coro_fn(d)
        finally:
            await d.aclose()
    return asyncio.run(_main())


def test_discovered_nodes_are_merged_by_url():
    nodes = _run(lambda d: d.discover_nodes())
    assert [n.url for n in nodes] == ["https://node-a.test", "https://node-b.test"]
    assert nodes[1].name == "B"


def test_unreachable_node_only_degrades_its_entry():
    statuses = _run(lambda d: d.check_all_nodes_status())
    by_url = {s.url: s for s in statuses}
    a, b = by_url["https://node-a.test"], by_url["https://node-b.test"]
    assert a.active and a.status == "active"
    assert a.total_proofs == 42
    assert a.response_time_ms is not None
    assert not b.active and b.status == "offline"
    assert "unreachable" in b.error


def test_discovery_service_failure_falls_back_to_known_nodes():
    def handler(request):
        if str(request.url) == DISCOVERY:
            return httpx.Response(503)
        return _handler(request)

    async def _main():
        d = _discovery(handler)
        try:
            return await d.discover_nodes()
        finally:
            await d.aclose()

    nodes = asyncio.run(_main())
    assert [n.url for n in nodes] == [NODE_A.url]


def test_no_discovery_url():
    async def _main():
        d = _discovery(discovery_url="")
        try:
            return await d.discover_nodes()
        finally:
            await d.aclose()

    assert asyncio.run(_main()) == [NODE_A]


def test_custom_nodes_and_default_registry():
    d = RegistryDiscovery(discovery_url="")
    assert d.default_registry() == "https://gdn.sh"
    assert len(d.known_nodes) >= len(DEFAULT_NODES)

    node = d.add_custom_node("https://mine.test/", name="Mine")
    assert node.url == "https://mine.test"
    assert d.add_custom_node("https://mine.test") is node
    d.remove_custom_node("https://mine.test")
    assert all(n.url != "https://mine.test" for n in d.known_nodes)

    # built-in nodes are not removable
    d.remove_custom_node("https://gdn.sh")
    assert d.default_registry() == "https://gdn.sh"


def test_extra_nodes_from_settings(monkeypatch):
    from pohw.settings import settings
    monkeypatch.setattr(settings, "extra_nodes", "https://x.test/, https://y.test")
    d = RegistryDiscovery(known_nodes=[], discovery_url="")
    assert [n.url for n in d.known_nodes] == ["https://x.test", "https://y.test"]
    assert d.default_registry() == "https://x.test"
