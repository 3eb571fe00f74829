"""
azure_arm
---------

ARM(management.azure.com) 및 Kudu 호출에 공통으로 쓰는 HTTP 헬퍼.
"""

from __future__ import annotations

from typing import Any, Optional, Type

import httpx

from .credentials import CredentialCache
from .errors import DeployKitError, DeploymentError
from .logging_utils import get_logger


logger = get_logger(__name__)


MANAGEMENT_URL = "https://management.azure.com"
WEB_API_VERSION = "2016-08-01"
DEPLOYMENTS_API_VERSION = "2019-10-01"


class ArmSession:
    """
    httpx.Client 와 토큰 캐시를 묶은 세션.

    요청마다 토큰 캐시에서 토큰을 다시 읽고, 전송 계층 오류는 지정한 예외로 감싼다.
    HTTP 상태 코드 해석은 호출자의 몫이다.
    """

    def __init__(
        self,
        client: httpx.Client,
        credentials: CredentialCache,
        account: Optional[str] = None,
    ) -> None:
        self.client = client
        self._credentials = credentials
        self._account = account

    def access_token(self) -> str:
        return self._credentials.access_token(self._account)

    def auth_headers(self, token: Optional[str] = None) -> dict:
        return {"Authorization": f"Bearer {token or self.access_token()}"}

    def request(
        self,
        method: str,
        url: str,
        *,
        error_cls: Type[DeployKitError] = DeploymentError,
        token: Optional[str] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        headers.update(self.auth_headers(token))
        logger.debug("%s %s", method, url)
        try:
            return self.client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise error_cls(f"요청 실패: {method} {url} ({e})") from e


def resource_url(resource_id: str, operation: str = "", api_version: str = WEB_API_VERSION) -> str:
    """
    리소스 id 기준 ARM 프록시 URL.
    e.g. https://management.azure.com{resourceId}/functions?api-version=2016-08-01
    """
    path = f"{MANAGEMENT_URL}{resource_id}"
    if operation:
        path += "/" + operation.lstrip("/")
    return f"{path}?api-version={api_version}"


def json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


