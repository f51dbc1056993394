from typing import Any, List

import pytest


class FakeTransport:
    """Records payloads instead of talking to a provider."""

    def __init__(self, response: Any = None, fail_on: List[int] = None, error: Exception = None):
        self.payloads: List[Any] = []
        self.response = response
        self.fail_on = set(fail_on or [])
        self.error = error or RuntimeError("provider rejected the message")

    async def send(self, payload):
        index = len(self.payloads)
        self.payloads.append(payload)
        if index in self.fail_on:
            raise self.error
        return self.response


class FakeResponse:
    def __init__(self, status_code=202, body=b"", headers=None, json_body=None):
        self.status_code = status_code
        self.body = body
        self.headers = headers or {}
        self._json = json_body
        self.text = "" if json_body is None else "json"

    def json(self):
        return self._json


@pytest.fixture
def transport():
    return FakeTransport()
