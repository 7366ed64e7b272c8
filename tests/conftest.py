"""Shared fixtures: a fake API client that records calls and replays canned responses."""

import pytest

from intervals_coach_mcp.config import Config
from intervals_coach_mcp.tools import ToolDispatcher

CONFIG = Config(api_key="test", athlete_id="i1")


class FakeClient:
    """Stands in for IntervalsClient. Exceptions in the response queue are raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def request(self, endpoint, method="GET", body=None, params=None):
        self.calls.append({"endpoint": endpoint, "method": method, "body": body, "params": params})
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {endpoint}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def aclose(self):
        pass


@pytest.fixture
def config():
    return CONFIG


@pytest.fixture
def make_dispatcher():
    """Build a dispatcher whose client answers with the given responses, in order."""

    def _make(*responses):
        client = FakeClient(*responses)
        return ToolDispatcher(CONFIG, client), client

    return _make


@pytest.fixture
def fake_client():
    return FakeClient
