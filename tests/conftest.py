import json
import os
import sys

# Ensure project root is in sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
import requests

import sheets_writer


@pytest.fixture(autouse=True)
def sleeps(monkeypatch):
    """Record sleeps instead of waiting on them."""
    calls = []
    monkeypatch.setattr("time.sleep", lambda seconds: calls.append(seconds))
    monkeypatch.setattr(sheets_writer, "api_call_count", 0)
    return calls


def make_response(status, payload=None):
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(payload if payload is not None else {}).encode("utf-8")
    response.url = "https://services.leadconnectorhq.com/contacts/"
    return response


def contact(contact_id, date="2024-03-10T12:00:00.000Z", tags=("sale",), **extra):
    data = {"id": contact_id, "dateAdded": date, "tags": list(tags)}
    data.update(extra)
    return data


class FakeSession:
    """Stands in for requests.Session; replays queued responses or exceptions."""

    def __init__(self, responses):
        self.headers = {}
        self.responses = list(responses)
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item
