import pytest
from unittest.mock import MagicMock

from config import Settings


def make_response(status=200, json_data=None, text=""):
    """A stand-in for requests.Response with just the attributes the services read."""
    res = MagicMock()
    res.status_code = status
    res.ok = 200 <= status < 400
    res.text = text
    if isinstance(json_data, Exception):
        res.json.side_effect = json_data
    else:
        res.json.return_value = json_data
    return res


class FakeHttp:
    """
    Records every outbound call and replies from a queue.
    Queue items are responses or exceptions (which get raised).
    When the queue runs dry, `default` is returned.
    """
    def __init__(self, *responses, default=None):
        self.responses = list(responses)
        self.default = default
        self.calls = []

    def __call__(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        reply = self.responses.pop(0) if self.responses else self.default
        if isinstance(reply, Exception):
            raise reply
        if reply is None:
            raise AssertionError(f"unexpected HTTP call: {method} {url}")
        return reply

    @property
    def queries(self):
        return [c["params"]["q"] for c in self.calls]


@pytest.fixture
def settings():
    return Settings(
        gemini_api_key="test-gemini-key",
        gemini_model="gemini-2.5-flash",
        locationiq_key="test-locationiq-key",
        google_maps_api_key="test-maps-key",
    )


@pytest.fixture
def locations():
    col = MagicMock()
    col.count_documents.return_value = 0
    col.insert_one.return_value = MagicMock(inserted_id="665f1c2e9b1e8a0012345678")
    return col
