import json as _json
import unittest

import requests

from festdraw.errors import PersistenceError
from festdraw.storage import RestDocumentBackend, StateStore
from festdraw.storage.remote import content_digest
from festdraw.models import LotteryAggregate, Prize


class DummyResponse:
    def __init__(self, json_data=None, content: bytes = b"", status_error=None):
        self._json = json_data
        if json_data is not None and not content:
            content = _json.dumps(json_data).encode()
        self.content = content
        self._status_error = status_error

    def json(self):
        if self._json is None and self.content:
            return _json.loads(self.content)
        return self._json

    def raise_for_status(self):
        if self._status_error is not None:
            raise self._status_error


class DummySession:
    def __init__(self, response: DummyResponse):
        self.response = response
        self.calls = []

    def request(self, method, url, headers=None, params=None, json=None, timeout=None):
        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": headers,
                "params": params,
                "json": json,
                "timeout": timeout,
            }
        )
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


class TestRestDocumentBackend(unittest.TestCase):
    def setUp(self):
        self.session = DummySession(DummyResponse(json_data={"ok": True}))
        self.backend = RestDocumentBackend(
            "https://db.example.com/lottery/",
            auth="secret-token",
            timeout=3,
            session=self.session,
        )

    def test_requires_base_url(self):
        with self.assertRaises(ValueError):
            RestDocumentBackend("")

    def test_write_puts_document(self):
        self.backend.write("lottery_state", {"prizes": []})
        call = self.session.calls[0]
        self.assertEqual(call["method"], "PUT")
        self.assertEqual(call["url"], "https://db.example.com/lottery/lottery_state.json")
        self.assertEqual(call["params"], {"auth": "secret-token"})
        self.assertEqual(call["json"], {"prizes": []})
        self.assertEqual(call["timeout"], 3)

    def test_read_returns_document_or_none(self):
        self.assertEqual(self.backend.read("lottery_state"), {"ok": True})
        self.assertEqual(self.session.calls[0]["method"], "GET")

        self.session.response = DummyResponse(content=b"null")
        self.assertIsNone(self.backend.read("lottery_state"))

        self.session.response = DummyResponse(content=b"")
        self.assertIsNone(self.backend.read("lottery_state"))

    def test_no_auth_param_without_token(self):
        backend = RestDocumentBackend("https://db.example.com", session=self.session)
        backend.read("lottery_state")
        self.assertIsNone(self.session.calls[-1]["params"])
        self.assertEqual(self.session.calls[-1]["url"], "https://db.example.com/lottery_state.json")

    def test_http_errors_become_persistence_errors(self):
        self.session.response = DummyResponse(
            json_data={"error": "Permission denied"},
            status_error=requests.HTTPError("401 Client Error"),
        )
        with self.assertRaises(PersistenceError) as ctx:
            self.backend.write("lottery_state", {})
        self.assertIsInstance(ctx.exception.__cause__, requests.HTTPError)

        self.session.response = requests.ConnectionError("network unreachable")
        with self.assertRaises(PersistenceError) as ctx:
            self.backend.read("lottery_state")
        self.assertIn("network unreachable", str(ctx.exception))

    def test_revision_tracks_content(self):
        first = self.backend.revision("lottery_state")
        self.assertEqual(first, self.backend.revision("lottery_state"))
        self.session.response = DummyResponse(json_data={"ok": False})
        self.assertNotEqual(first, self.backend.revision("lottery_state"))
        self.session.response = DummyResponse(content=b"null")
        self.assertIsNone(self.backend.revision("lottery_state"))

    def test_store_watch_over_rest(self):
        self.session.response = DummyResponse(content=b"null")
        store = StateStore(self.backend, None, key="lottery_state")
        received = []
        subscription = store.subscribe(received.append, start=False)

        aggregate = LotteryAggregate(
            prizes=(Prize(id="prize-1", name="一等奖", total_count=1, remaining_count=1),)
        )
        self.session.response = DummyResponse(json_data=aggregate.to_json())
        self.assertTrue(subscription.watch.poll_once())
        self.assertEqual(received, [aggregate])
        subscription.close()

    def test_write_returns_marker_of_stored_document(self):
        document = {"prizes": [], "isDrawing": False, "totalDrawn": 0}
        marker = self.backend.write("lottery_state", document)
        self.session.response = DummyResponse(json_data=document)
        self.assertEqual(marker, self.backend.revision("lottery_state"))

    def test_poll_reads_document_once_per_change(self):
        self.session.response = DummyResponse(content=b"null")
        seen = []
        watch = self.backend.watch("lottery_state", lambda doc, marker: seen.append((doc, marker)))
        self.session.calls.clear()

        document = {"prizes": [], "isDrawing": False, "totalDrawn": 3}
        self.session.response = DummyResponse(json_data=document)
        self.assertTrue(watch.poll_once())
        self.assertEqual(len(self.session.calls), 1)
        self.assertEqual(seen, [(document, content_digest(document))])

        self.assertFalse(watch.poll_once())
        self.assertEqual(len(self.session.calls), 2)
        self.assertEqual(len(seen), 1)

    def test_own_rest_write_is_not_echoed(self):
        self.session.response = DummyResponse(content=b"null")
        store = StateStore(self.backend, None, key="lottery_state")
        received = []
        subscription = store.subscribe(received.append, start=False)

        aggregate = LotteryAggregate(
            prizes=(Prize(id="prize-1", name="一等奖", total_count=1, remaining_count=1),)
        )
        store.save(aggregate)
        self.session.response = DummyResponse(json_data=aggregate.to_json())
        self.assertTrue(subscription.watch.poll_once())
        self.assertEqual(received, [])
        subscription.close()


if __name__ == "__main__":
    unittest.main()
