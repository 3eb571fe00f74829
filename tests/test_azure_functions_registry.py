import httpx
import pytest

from azure_deploy_kit.azure_functions_registry import FunctionRegistryClient
from azure_deploy_kit.errors import DeploymentError
from azure_deploy_kit.models import ResourceDescriptor

from conftest import SITE_ID, TEST_TOKEN


BASE = f"https://management.azure.com{SITE_ID}"
LIST_URL = f"{BASE}/functions?api-version=2016-08-01"
SYNC_URL = f"{BASE}/syncfunctiontriggers?api-version=2016-08-01"
AUTH_KEY_URL = f"{BASE}/functions/admin/token?api-version=2016-08-01"
MASTER_KEY_URL = "https://myapi.azurewebsites.net/admin/host/systemkeys/_master"


def _functions_response(names) -> list:
    return [
        {
            "id": f"{SITE_ID}/functions/{name}",
            "name": f"myapi/{name}",
            "properties": {"name": name, "config": {"bindings": [{"type": "httpTrigger"}]}},
        }
        for name in names
    ]


@pytest.fixture
def descriptor(site_payload) -> ResourceDescriptor:
    return ResourceDescriptor.from_arm(site_payload)


def test_list_returns_properties_in_server_order(make_session, descriptor) -> None:
    raw = _functions_response(["zeta", "alpha", "mid"])

    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == LIST_URL
        return httpx.Response(200, json={"value": raw})

    session = make_session(handler)
    entries = FunctionRegistryClient(session).list(descriptor)

    assert [e.properties for e in entries] == [f["properties"] for f in raw]
    assert [e.name for e in entries] == ["zeta", "alpha", "mid"]
    assert session.sent[0].headers["Authorization"] == f"Bearer {TEST_TOKEN}"


def test_list_failure_raises(make_session, descriptor) -> None:
    session = make_session(lambda r: httpx.Response(500, text="boom"))

    with pytest.raises(DeploymentError):
        FunctionRegistryClient(session).list(descriptor)


@pytest.mark.parametrize("status", [200, 404])
def test_delete_returns_response_regardless_of_status(make_session, descriptor, status) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        assert str(request.url) == f"{BASE}/functions/hello?api-version=2016-08-01"
        return httpx.Response(status, text="delete function success")

    response = FunctionRegistryClient(make_session(handler)).delete(descriptor, "hello")

    assert response.status_code == status
    assert response.text == "delete function success"


def test_sync_triggers_posts_without_body(make_session, descriptor) -> None:
    session = make_session(lambda r: httpx.Response(200, text="sync triggers success"))

    response = FunctionRegistryClient(session).sync_triggers(descriptor)

    request = session.sent[0]
    assert request.method == "POST"
    assert str(request.url) == SYNC_URL
    assert request.content == b""
    assert response.text == "sync triggers success"


def test_master_key_uses_host_admin_token(make_session, descriptor) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == AUTH_KEY_URL:
            return httpx.Response(200, json="authKey")
        if str(request.url) == MASTER_KEY_URL:
            assert request.headers["Authorization"] == "Bearer authKey"
            return httpx.Response(200, json={"value": "masterKey"})
        return httpx.Response(404)

    client = FunctionRegistryClient(make_session(handler))

    assert client.get_master_key(descriptor) == "masterKey"


def test_master_key_failure_raises(make_session, descriptor) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == AUTH_KEY_URL:
            return httpx.Response(200, json="authKey")
        return httpx.Response(401, text="Unauthorized")

    with pytest.raises(DeploymentError):
        FunctionRegistryClient(make_session(handler)).get_master_key(descriptor)
