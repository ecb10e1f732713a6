from __future__ import annotations

import types

import pytest

from e3db_sdk.client import Client, get_client, register_client
from e3db_sdk.crypto.keys import decode_key
from e3db_sdk.errors import ConfigError, RecordDecodeError, ServiceRequestError
from e3db_sdk.models import ClientConfig, Meta, Q, Record


def _client() -> Client:
    return Client(
        config=ClientConfig(
            client_id="client-1",
            api_key_id="key-id",
            api_secret="top-secret",
            api_url="http://localhost:8000",
        ),
        timeout=0.1,
    )


def _result(record_id: str) -> dict:
    return {"meta": {"record_id": record_id, "type": "note"}, "record_data": {"k": record_id}}


def test_query_cursor_fetches_pages_lazily(monkeypatch) -> None:
    client = _client()
    pages = {
        0: {"results": [_result("a"), _result("b")], "last_index": 2},
        2: {"results": [_result("c")], "last_index": 3},
        3: {"results": [], "last_index": 3},
    }
    requested: list[int] = []

    def fake_request(method, path, *, json_payload=None):  # noqa: ANN001
        assert (method, path) == ("POST", "/v1/storage/search")
        requested.append(json_payload["after_index"])
        return pages[json_payload["after_index"]]

    monkeypatch.setattr(client, "_request", fake_request)

    cursor = client.query(Q(content_types=["note"]))
    assert requested == []

    assert cursor.next() is True
    assert cursor.get().meta.record_id == "a"
    assert requested == [0]

    remaining = [record.meta.record_id for record in cursor]
    assert remaining == ["b", "c"]
    assert requested == [0, 2, 3]
    assert cursor.next() is False


def test_cursor_surfaces_page_error_through_get(monkeypatch) -> None:
    client = _client()
    calls = iter(
        [
            {"results": [_result("a")], "last_index": 1},
            ServiceRequestError("service request failed: 500 boom", status_code=500),
        ]
    )

    def fake_request(method, path, *, json_payload=None):  # noqa: ANN001, ARG001
        item = next(calls)
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr(client, "_request", fake_request)
    cursor = client.query(Q())

    assert cursor.next() is True
    assert cursor.get().meta.record_id == "a"
    assert cursor.next() is True
    with pytest.raises(ServiceRequestError):
        cursor.get()
    assert cursor.next() is False


def test_query_payload_omits_empty_dimensions() -> None:
    payload = Q(writer_ids=["w-1"], include_data=True).to_payload(after_index=7)
    assert payload == {"include_data": True, "after_index": 7, "count": 50, "writer_ids": ["w-1"]}


def test_request_uses_basic_auth_and_raises_on_error(monkeypatch) -> None:
    client = _client()
    captured: dict[str, object] = {}

    def fake_request(method, url, *, json=None, auth=None, timeout=None):  # noqa: ANN001
        captured["url"] = url
        captured["auth"] = auth
        return types.SimpleNamespace(
            status_code=404,
            text="not found",
            json=lambda: {"detail": "record not found"},
        )

    monkeypatch.setattr(client._session, "request", fake_request)

    with pytest.raises(ServiceRequestError) as excinfo:
        client.read("rec-1")

    assert captured["url"] == "http://localhost:8000/v1/storage/records/rec-1"
    assert captured["auth"] == ("key-id", "top-secret")
    assert excinfo.value.status_code == 404
    assert "record not found" in str(excinfo.value)


def test_new_record_and_write_return_assigned_id(monkeypatch) -> None:
    client = _client()
    sent: list[dict] = []

    def fake_request(method, path, *, json_payload=None):  # noqa: ANN001
        assert (method, path) == ("POST", "/v1/storage/records")
        sent.append(json_payload)
        return {"meta": dict(json_payload["meta"], record_id="rec-9"), "data": json_payload["data"]}

    monkeypatch.setattr(client, "_request", fake_request)

    record = client.new_record("contact")
    record.data = {"name": "Jon"}
    assert client.write(record) == "rec-9"
    assert sent[0]["meta"]["writer_id"] == "client-1"
    assert sent[0]["meta"]["type"] == "contact"
    assert sent[0]["data"] == {"name": "Jon"}


def test_read_rejects_malformed_record(monkeypatch) -> None:
    client = _client()
    monkeypatch.setattr(client, "_request", lambda method, path, json_payload=None: {"meta": None})

    with pytest.raises(RecordDecodeError):
        client.read("rec-1")


def test_get_client_requires_credentials() -> None:
    with pytest.raises(ConfigError, match="api_secret"):
        get_client(ClientConfig(client_id="c", api_key_id="k", api_secret=""))


def test_get_client_rejects_malformed_keys() -> None:
    with pytest.raises(ConfigError, match="public_key"):
        get_client(
            ClientConfig(client_id="c", api_key_id="k", api_secret="s", public_key="short")
        )


def test_register_client_sends_public_key_and_keeps_private_key(monkeypatch) -> None:
    captured: dict[str, object] = {}

    class _Session:
        def request(self, method, url, *, json=None, auth=None, timeout=None):  # noqa: ANN001
            captured["method"] = method
            captured["url"] = url
            captured["json"] = json
            captured["auth"] = auth
            return types.SimpleNamespace(
                status_code=201,
                json=lambda: {"client_id": "c-1", "api_key_id": "k-1", "api_secret": "s-1"},
            )

    monkeypatch.setattr("e3db_sdk.client._build_session", lambda retries: _Session())

    info = register_client("jon@example.com", api_url="http://localhost:8000/")

    assert captured["method"] == "POST"
    assert captured["url"] == "http://localhost:8000/v1/account/e3db/clients/register"
    assert captured["auth"] is None
    assert captured["json"]["email"] == "jon@example.com"
    assert captured["json"]["public_key"] == {"curve25519": info.public_key}
    assert info.private_key not in str(captured["json"])
    assert len(decode_key(info.public_key)) == 32
    assert len(decode_key(info.private_key)) == 32
    assert (info.client_id, info.api_key_id, info.api_secret) == ("c-1", "k-1", "s-1")


def test_register_client_rejects_incomplete_response(monkeypatch) -> None:
    class _Session:
        def request(self, method, url, *, json=None, auth=None, timeout=None):  # noqa: ANN001, ARG002
            return types.SimpleNamespace(status_code=200, json=lambda: {"client_id": "c-1"})

    monkeypatch.setattr("e3db_sdk.client._build_session", lambda retries: _Session())

    with pytest.raises(RecordDecodeError, match="api_key_id"):
        register_client("jon@example.com")


def test_record_model_ignores_unknown_fields() -> None:
    record = Record.model_validate({"meta": {"type": "note", "extra": 1}, "data": {}})
    assert record.meta == Meta(type="note")


def test_cursor_rejects_non_list_results(monkeypatch) -> None:
    client = _client()
    monkeypatch.setattr(
        client, "_request", lambda method, path, json_payload=None: {"results": 5}
    )
    cursor = client.query(Q())

    assert cursor.next() is True
    with pytest.raises(RecordDecodeError, match="must be a list"):
        cursor.get()


def test_read_quotes_record_id_in_path(monkeypatch) -> None:
    client = _client()
    paths: list[str] = []

    def fake_request(method, path, *, json_payload=None):  # noqa: ANN001, ARG001
        paths.append(path)
        return {"meta": {"record_id": "x", "type": "note"}}

    monkeypatch.setattr(client, "_request", fake_request)

    client.read("../a/b?y=1")

    assert paths == ["/v1/storage/records/..%2Fa%2Fb%3Fy%3D1"]
