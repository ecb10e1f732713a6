"""Typed SDK client for the e3db storage service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator
from urllib.parse import quote

from pydantic import ValidationError

from e3db_sdk.config import get_config
from e3db_sdk.crypto.keys import decode_key, generate_keypair
from e3db_sdk.errors import (
    ConfigError,
    RecordDecodeError,
    ServiceRequestError,
    ServiceUnavailableError,
)
from e3db_sdk.models import DEFAULT_API_URL, ClientConfig, Meta, Q, Record, RegistrationInfo

logger = logging.getLogger(__name__)

SEARCH_PATH = "/v1/storage/search"
RECORDS_PATH = "/v1/storage/records"
REGISTER_PATH = "/v1/account/e3db/clients/register"


def _enable_debug_logging() -> None:
    logging.getLogger("e3db_sdk").setLevel(logging.DEBUG)


def _build_session(retries: int):
    try:
        import requests
        from requests.adapters import HTTPAdapter
        from urllib3.util.retry import Retry
    except Exception as exc:  # pragma: no cover
        raise ServiceUnavailableError(f"requests stack unavailable: {exc}") from exc

    session = requests.Session()
    retry = Retry(
        total=max(0, int(retries)),
        connect=max(0, int(retries)),
        read=max(0, int(retries)),
        status=max(0, int(retries)),
        status_forcelist=(429, 500, 502, 503, 504),
        backoff_factor=0.2,
        allowed_methods=("GET",),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _send(session, method: str, url: str, *, json_payload=None, auth=None, timeout=None) -> dict:
    try:
        response = session.request(method, url, json=json_payload, auth=auth, timeout=timeout)
    except Exception as exc:  # pragma: no cover
        raise ServiceUnavailableError(str(exc)) from exc

    logger.debug("%s %s -> %s", method, url, response.status_code)
    if response.status_code >= 400:
        body: object | None = None
        detail: object | None = None
        try:
            body = response.json()
        except Exception:
            body = None
        if isinstance(body, dict):
            detail = body.get("detail") or body.get("message")
        if isinstance(detail, str):
            message = f"service request failed: {response.status_code} {detail}"
        else:
            message = f"service request failed: {response.status_code} {response.text}"
        raise ServiceRequestError(
            message,
            status_code=response.status_code,
            detail=detail,
            body=body,
        )
    try:
        return response.json()
    except ValueError as exc:
        raise RecordDecodeError(f"service returned invalid JSON: {method} {url}") from exc


def _to_record(payload: object) -> Record:
    if not isinstance(payload, dict):
        raise RecordDecodeError("record payload must be a JSON object")
    data = payload.get("data", payload.get("record_data")) or {}
    try:
        return Record.model_validate({"meta": payload.get("meta"), "data": data})
    except ValidationError as exc:
        raise RecordDecodeError(f"invalid record payload: {exc.error_count()} field error(s)") from exc


class Cursor:
    """Forward-only iterator over search results.

    Pages are fetched lazily as the cursor advances; only the current page is
    held in memory. ``next()`` reports whether another element is available and
    ``get()`` returns it, or raises the error that ended the scan.
    """

    def __init__(self, client: "Client", q: Q) -> None:
        self._client = client
        self._q = q
        self._records = self._scan()
        self._current: Record | None = None
        self._error: Exception | None = None
        self._done = False

    def _scan(self) -> Iterator[Record]:
        after_index = 0
        while True:
            page = self._client._request(
                "POST",
                SEARCH_PATH,
                json_payload=self._q.to_payload(after_index=after_index),
            )
            if not isinstance(page, dict):
                raise RecordDecodeError("search response must be a JSON object")
            results = page.get("results") or []
            if not isinstance(results, list):
                raise RecordDecodeError("search response results must be a list")
            logger.debug("search page after_index=%s: %d result(s)", after_index, len(results))
            if not results:
                return
            for item in results:
                yield _to_record(item)
            last_index = page.get("last_index")
            if not isinstance(last_index, int) or last_index <= after_index:
                return
            after_index = last_index

    def next(self) -> bool:
        if self._done:
            return False
        try:
            self._current = next(self._records)
        except StopIteration:
            self._done = True
            self._current = None
            return False
        except (ServiceUnavailableError, RecordDecodeError) as exc:
            # Surface the failure through get(); the scan cannot resume.
            self._done = True
            self._current = None
            self._error = exc
            return True
        return True

    def get(self) -> Record:
        if self._error is not None:
            raise self._error
        if self._current is None:
            raise RecordDecodeError("cursor has no current record")
        return self._current

    def __iter__(self) -> Iterator[Record]:
        while self.next():
            yield self.get()


@dataclass
class Client:
    config: ClientConfig
    timeout: float = 10.0
    retries: int = 2

    def __post_init__(self) -> None:
        self._session = _build_session(self.retries)
        if self.config.logging:
            _enable_debug_logging()

    def __str__(self) -> str:
        return (
            f"Client(client_id={self.config.client_id}, api_url={self.config.api_url}, "
            f"logging={self.config.logging})"
        )

    @property
    def client_id(self) -> str:
        return self.config.client_id

    def _url(self, path: str) -> str:
        return f"{self.config.api_url.rstrip('/')}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, *, json_payload: dict | None = None) -> dict:
        return _send(
            self._session,
            method,
            self._url(path),
            json_payload=json_payload,
            auth=(self.config.api_key_id, self.config.api_secret),
            timeout=self.timeout,
        )

    def query(self, q: Q) -> Cursor:
        return Cursor(self, q)

    def new_record(self, record_type: str) -> Record:
        return Record(
            meta=Meta(writer_id=self.client_id, user_id=self.client_id, type=record_type)
        )

    def write(self, record: Record) -> str:
        payload = record.model_dump(mode="json", include={"meta", "data"})
        written = _to_record(self._request("POST", RECORDS_PATH, json_payload=payload))
        if not written.meta.record_id:
            raise RecordDecodeError("service response did not include a record_id")
        return written.meta.record_id

    def read(self, record_id: str) -> Record:
        return _to_record(self._request("GET", f"{RECORDS_PATH}/{quote(record_id, safe='')}"))


def get_client(config: ClientConfig) -> Client:
    missing = [
        name for name in ("client_id", "api_key_id", "api_secret") if not getattr(config, name)
    ]
    if missing:
        raise ConfigError(f"profile is missing required fields: {', '.join(missing)}")
    for name in ("public_key", "private_key"):
        value = getattr(config, name)
        if value:
            try:
                decode_key(value)
            except ValueError as exc:
                raise ConfigError(f"{name}: {exc}") from exc
    return Client(config=config)


def get_default_client() -> Client:
    return get_client(get_config(""))


def register_client(
    email: str,
    *,
    logging: bool = False,
    api_url: str = DEFAULT_API_URL,
    timeout: float = 10.0,
) -> RegistrationInfo:
    """Register a new client identity and return its credentials.

    A fresh key pair is generated locally; only the public half is sent.
    """
    public_key, private_key = generate_keypair()
    session = _build_session(0)
    if logging:
        _enable_debug_logging()
    url = f"{api_url.rstrip('/')}/{REGISTER_PATH.lstrip('/')}"
    response = _send(
        session,
        "POST",
        url,
        json_payload={"email": email, "public_key": {"curve25519": public_key}},
        timeout=timeout,
    )
    if not isinstance(response, dict):
        raise RecordDecodeError("registration response must be a JSON object")
    credentials = {name: response.get(name) for name in ("client_id", "api_key_id", "api_secret")}
    missing = [name for name, value in credentials.items() if not isinstance(value, str) or not value]
    if missing:
        raise RecordDecodeError(f"registration response missing: {', '.join(missing)}")
    return RegistrationInfo(
        **credentials,
        client_email=email,
        public_key=public_key,
        private_key=private_key,
        api_url=api_url,
    )


__all__ = ["Client", "Cursor", "get_client", "get_default_client", "register_client"]
