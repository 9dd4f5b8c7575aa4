from unittest.mock import MagicMock

import pytest
import requests

from home_ops.adapters.proxy import MERGE_PATCH, ApiProxyBackend
from home_ops.errors import DiscoveryError, ReadError, TriggerError
from home_ops.models import ReadyState, ResourceRef, SyncStatus

BASE = "http://127.0.0.1:8001"


def _response(payload=None, error=None) -> MagicMock:
    response = MagicMock()
    response.json.return_value = payload
    if error is not None:
        response.raise_for_status.side_effect = error
    return response


@pytest.fixture
def session() -> MagicMock:
    return MagicMock(spec=requests.Session)


@pytest.fixture
def backend(session: MagicMock) -> ApiProxyBackend:
    return ApiProxyBackend(f"{BASE}/", session=session, now=lambda: 1714557600)


def test_urls(backend: ApiProxyBackend) -> None:
    assert backend.url() == f"{BASE}/apis/external-secrets.io/v1/externalsecrets"
    assert backend.url("apps") == f"{BASE}/apis/external-secrets.io/v1/namespaces/apps/externalsecrets"
    assert backend.url("apps", "app-secret") == f"{BASE}/apis/external-secrets.io/v1/namespaces/apps/externalsecrets/app-secret"


def test_list_namespace(backend: ApiProxyBackend, session: MagicMock) -> None:
    session.get.return_value = _response(
        {"items": [{"metadata": {"namespace": "apps", "name": "b"}}, {"metadata": {"namespace": "apps", "name": "a"}}]}
    )

    refs = backend.list(namespace="apps")

    assert refs == [ResourceRef("apps", "a"), ResourceRef("apps", "b")]
    session.get.assert_called_once_with(backend.url("apps"), timeout=10)


def test_list_http_error_is_discovery_error(backend: ApiProxyBackend, session: MagicMock) -> None:
    session.get.return_value = _response(error=requests.HTTPError("404 Client Error"))
    with pytest.raises(DiscoveryError, match="404"):
        backend.list()


def test_list_name_requires_namespace(backend: ApiProxyBackend) -> None:
    with pytest.raises(DiscoveryError):
        backend.list(name="app-secret")


def test_read(backend: ApiProxyBackend, session: MagicMock) -> None:
    session.get.return_value = _response(
        {
            "status": {
                "refreshTime": "2024-05-01T10:00:00Z",
                "conditions": [
                    {"type": "Deleted", "status": "False"},
                    {"type": "Ready", "status": "True", "message": "secret synced"},
                ],
            }
        }
    )

    status = backend.read(ResourceRef("apps", "app-secret"))

    assert status == SyncStatus("2024-05-01T10:00:00Z", ReadyState.TRUE, "secret synced")


def test_read_connection_error_is_read_error(backend: ApiProxyBackend, session: MagicMock) -> None:
    session.get.side_effect = requests.ConnectionError("connection refused")
    with pytest.raises(ReadError, match="connection refused"):
        backend.read(ResourceRef("apps", "app-secret"))


def test_fire_sends_merge_patch(backend: ApiProxyBackend, session: MagicMock) -> None:
    session.patch.return_value = _response()

    backend.fire(ResourceRef("apps", "app-secret"))

    session.patch.assert_called_once_with(
        backend.url("apps", "app-secret"),
        json={"metadata": {"annotations": {"force-sync": "1714557600"}}},
        headers={"Content-Type": MERGE_PATCH},
        timeout=10,
    )


def test_fire_error_is_trigger_error(backend: ApiProxyBackend, session: MagicMock) -> None:
    session.patch.return_value = _response(error=requests.HTTPError("403 Forbidden"))
    with pytest.raises(TriggerError, match="403"):
        backend.fire(ResourceRef("apps", "app-secret"))
