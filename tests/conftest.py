"""
pytest 설정:

로컬 작업 환경에 설치된 다른 버전의 azure_deploy_kit 패키지가 존재할 때,
`pytest` 실행 시 site-packages 쪽이 먼저 import 되어 테스트가 깨질 수 있다.

테스트는 항상 현재 레포의 소스를 대상으로 해야 하므로, repo root 를 sys.path 최상단에 고정한다.
"""

from __future__ import annotations

import os
import sys

import httpx
import pytest


def pytest_configure() -> None:
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


TEST_TOKEN = "token-abc"
SITE_ID = "/subscriptions/sub-1/resourceGroups/rg1/providers/Microsoft.Web/sites/myapi"


@pytest.fixture
def site_payload() -> dict:
    return {
        "id": SITE_ID,
        "name": "myapi",
        "properties": {
            "defaultHostName": "myapi.azurewebsites.net",
            "enabledHostNames": ["myapi.azurewebsites.net", "myapi.scm.azurewebsites.net"],
        },
    }


@pytest.fixture
def make_session():
    """
    httpx.MockTransport 핸들러로 ArmSession 을 만든다. 보낸 요청은 session.sent 에 쌓인다.
    """
    from azure_deploy_kit.azure_arm import ArmSession
    from azure_deploy_kit.credentials import CredentialCache

    clients = []

    def factory(handler):
        sent = []

        def recording(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return handler(request)

        client = httpx.Client(transport=httpx.MockTransport(recording))
        clients.append(client)
        session = ArmSession(client, CredentialCache([{"accessToken": TEST_TOKEN, "userId": "u"}]))
        session.sent = sent  # type: ignore[attr-defined]
        return session

    yield factory

    for client in clients:
        client.close()
