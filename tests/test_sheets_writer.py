import httplib2
import pytest
from googleapiclient.errors import HttpError

import sheets_writer
from sync_config import ConfigError, SyncConfig


class FakeRequest:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    def execute(self):
        if self.error is not None:
            raise self.error
        return self.result


class FakeValues:
    def __init__(self, update_error=None):
        self.calls = []
        self.update_error = update_error

    def clear(self, **kwargs):
        self.calls.append(("clear", kwargs))
        return FakeRequest({"clearedRange": kwargs["range"]})

    def update(self, **kwargs):
        self.calls.append(("update", kwargs))
        return FakeRequest({"updatedRows": len(kwargs["body"]["values"])}, self.update_error)


class FakeService:
    def __init__(self, values):
        self._values = values

    def spreadsheets(self):
        return self

    def values(self):
        return self._values


def http_error(status):
    resp = httplib2.Response({"status": status, "reason": "error"})
    return HttpError(resp, b'{"error": {"message": "error"}}')


def test_empty_rows_clear_body_without_update():
    values = FakeValues()

    sheets_writer.clear_and_write_data(FakeService(values), "sheet-id", "Raw Data", [])

    assert [name for name, _ in values.calls] == ["clear"]
    assert values.calls[0][1]["range"] == "Raw Data!A2:Z10000"
    assert values.calls[0][1]["spreadsheetId"] == "sheet-id"


def test_rows_replace_body_below_header():
    values = FakeValues()
    rows = [
        ("1", "Salem", "Jane Doe", "jane@example.com", "2024-01-15", "", "", "No", "No", "Yes", "January", 2024),
        ("2", "Keizer", "John Roe", "", "2024-02-01", "Tina", "Bob", "Yes", "No", "Yes", "February", 2024),
    ]

    sheets_writer.clear_and_write_data(FakeService(values), "sheet-id", "Raw Data", rows)

    assert [name for name, _ in values.calls] == ["clear", "update"]
    update = values.calls[1][1]
    assert update["range"] == "Raw Data!A2"
    assert update["valueInputOption"] == "USER_ENTERED"
    assert update["body"]["values"] == [list(r) for r in rows]
    assert sheets_writer.api_call_count == 2


def test_write_failure_propagates():
    values = FakeValues(update_error=http_error(400))

    with pytest.raises(HttpError):
        sheets_writer.clear_and_write_data(FakeService(values), "sheet-id", "Raw Data", [("1",)])


def test_execute_with_retry_retries_rate_limits(sleeps):
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise http_error(429)
        return "ok"

    assert sheets_writer.execute_with_retry(flaky, "flaky") == "ok"
    assert len(attempts) == 3
    assert len(sleeps) == 2


def test_execute_with_retry_gives_up_after_max_attempts():
    def always_busy():
        raise http_error(503)

    with pytest.raises(HttpError):
        sheets_writer.execute_with_retry(always_busy, "busy", max_attempts=2)
    assert sheets_writer.api_call_count == 2


def test_execute_with_retry_does_not_retry_client_errors():
    attempts = []

    def forbidden():
        attempts.append(1)
        raise http_error(403)

    with pytest.raises(HttpError):
        sheets_writer.execute_with_retry(forbidden, "forbidden")
    assert len(attempts) == 1


def test_get_service_rejects_bad_credentials_json():
    config = SyncConfig(spreadsheet_id="sheet-id", credentials_json="{not json")

    with pytest.raises(ConfigError):
        sheets_writer.get_service(config)


def test_get_service_uses_inline_credentials(monkeypatch):
    seen = {}

    def fake_from_info(info, scopes):
        seen["info"] = info
        seen["scopes"] = scopes
        return "creds"

    def fake_build(api, version, credentials):
        seen["build"] = (api, version, credentials)
        return "service"

    monkeypatch.setattr(sheets_writer.Credentials, "from_service_account_info", fake_from_info)
    monkeypatch.setattr(sheets_writer, "build", fake_build)

    config = SyncConfig(spreadsheet_id="sheet-id", credentials_json='{"type": "service_account"}')

    assert sheets_writer.get_service(config) == "service"
    assert seen["info"] == {"type": "service_account"}
    assert seen["scopes"] == ["https://www.googleapis.com/auth/spreadsheets"]
    assert seen["build"] == ("sheets", "v4", "creds")


def test_backoff_doubles_per_attempt(monkeypatch):
    monkeypatch.setattr(sheets_writer.random, "random", lambda: 0.0)

    assert [sheets_writer.backoff_seconds(a) for a in (1, 2, 3)] == [1.0, 2.0, 4.0]


def test_execute_with_retry_waits_between_attempts(sleeps, monkeypatch):
    monkeypatch.setattr(sheets_writer.random, "random", lambda: 0.0)

    def always_limited():
        raise http_error(429)

    with pytest.raises(HttpError):
        sheets_writer.execute_with_retry(always_limited, "limited", max_attempts=3)
    assert sleeps == [1.0, 2.0]
