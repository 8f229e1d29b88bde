import tempfile
import unittest

import httpx
from fastapi.testclient import TestClient

from coursemenu.api_server import create_app
from coursemenu.cache_store import InMemoryCacheStore
from coursemenu.catalog import EntityCatalog
from coursemenu.document_resolver import decode_payload
from coursemenu.metrics import ResolutionMetrics

PDF_BYTES = b"%PDF-1.5\x00api"

CATALOG = EntityCatalog.from_records(
    [
        {"id": "course1", "name": "Computer Systems", "source_url": "https://example.org/compsys.pdf", "semester": "BA4"},
        {"id": "course7", "name": "Computer Architecture", "source_url": "https://example.org/arch.pdf", "semester": "BA3"},
        {"id": "broken", "name": "Broken Course", "source_url": "https://example.org/missing.pdf"},
    ]
)


class TestApiServer(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.downloads: list[str] = []
        transport = httpx.MockTransport(self._handler)
        app = create_app(
            catalog=CATALOG,
            store=InMemoryCacheStore(),
            client=httpx.AsyncClient(transport=transport),
            metrics=ResolutionMetrics(self.tmp.name),
        )
        self.client = TestClient(app)
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)
        self.tmp.cleanup()

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.downloads.append(str(request.url))
        if request.url.path.endswith("missing.pdf"):
            return httpx.Response(404)
        return httpx.Response(200, content=PDF_BYTES)

    def test_catalog_lists_entities_in_order(self):
        response = self.client.get("/catalog")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([e["id"] for e in body], ["course1", "course7", "broken"])
        self.assertEqual(body[0]["semester"], "BA4")

    def test_suggest_returns_ghost_text(self):
        response = self.client.get("/suggest", params={"buffer": "ask @comp"})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["has_active_mention"])
        self.assertEqual(body["token"], "comp")
        self.assertEqual(body["suggestion"], "Computer Systems")
        self.assertEqual(body["ghost_text"], "uter Systems")

    def test_suggest_without_mention(self):
        body = self.client.get("/suggest", params={"buffer": "plain question"}).json()
        self.assertFalse(body["has_active_mention"])
        self.assertEqual(body["suggestion"], "")

    def test_resolve_downloads_once_then_hits_cache(self):
        first = self.client.post("/documents/course1/resolve")
        self.assertEqual(first.status_code, 200)
        first_body = first.json()
        self.assertFalse(first_body["from_cache"])
        self.assertEqual(first_body["stages"], ["checking cache", "downloading", "converting", "storing", "ready"])
        self.assertEqual(decode_payload(first_body["payload"]), PDF_BYTES)

        second = self.client.post("/documents/course1/resolve").json()
        self.assertTrue(second["from_cache"])
        self.assertEqual(second["stages"], ["checking cache", "found in cache"])
        self.assertEqual(second["payload"], first_body["payload"])
        self.assertEqual(len(self.downloads), 1)

    def test_unknown_entity_is_404(self):
        self.assertEqual(self.client.post("/documents/nope/resolve").status_code, 404)

    def test_fetch_error_is_502(self):
        response = self.client.post("/documents/broken/resolve")
        self.assertEqual(response.status_code, 502)
        self.assertIn("404", response.json()["detail"])

    def test_cached_flag_and_clear(self):
        self.assertFalse(self.client.get("/documents/course1/cached").json()["cached"])
        self.client.post("/documents/course1/resolve")
        self.assertTrue(self.client.get("/documents/course1/cached").json()["cached"])
        self.assertEqual(self.client.delete("/cache").json(), {"cleared": True})
        self.assertFalse(self.client.get("/documents/course1/cached").json()["cached"])

    def test_metrics_summarise_resolutions(self):
        self.client.post("/documents/course1/resolve")
        self.client.post("/documents/course1/resolve")
        self.client.post("/documents/broken/resolve")
        summary = self.client.get("/metrics").json()
        self.assertEqual(summary["resolutions"]["hit"], 1)
        self.assertEqual(summary["resolutions"]["miss"], 1)
        self.assertEqual(summary["resolutions"]["fetch_error"], 1)


if __name__ == "__main__":
    unittest.main()
