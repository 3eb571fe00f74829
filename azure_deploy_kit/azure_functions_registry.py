"""
azure_functions_registry
------------------------

배포된 Function App 안의 개별 함수 목록/삭제, 트리거 동기화, 호스트 키 조회를 담당하는 모듈.

삭제/동기화 응답은 상태 코드와 무관하게 그대로 호출자에게 돌려준다.
플랫폼이 200 응답 본문에 안내 메시지를 담아 보내는 경우가 있어서 성공 여부를 여기서 판단하지 않는다.
"""

from __future__ import annotations

from typing import List

import httpx

from .azure_arm import ArmSession, json_or_none, resource_url
from .errors import DeploymentError, describe_response
from .logging_utils import get_logger
from .models import FunctionEntry, ResourceDescriptor


logger = get_logger(__name__)


class FunctionRegistryClient:
    def __init__(self, session: ArmSession) -> None:
        self._session = session

    def list(self, descriptor: ResourceDescriptor) -> List[FunctionEntry]:
        """서버가 준 순서 그대로, 각 항목의 properties 를 담은 FunctionEntry 목록."""
        response = self._session.request("GET", resource_url(descriptor.id, "functions"))
        payload = json_or_none(response)
        if response.status_code >= 400 or not isinstance(payload, dict):
            raise DeploymentError(
                f"함수 목록 조회 실패: {descriptor.name} {describe_response(response)}"
            )
        return [FunctionEntry.from_arm(raw) for raw in payload.get("value") or []]

    def delete(self, descriptor: ResourceDescriptor, name: str) -> httpx.Response:
        return self._session.request("DELETE", resource_url(descriptor.id, f"functions/{name}"))

    def sync_triggers(self, descriptor: ResourceDescriptor) -> httpx.Response:
        return self._session.request("POST", resource_url(descriptor.id, "syncfunctiontriggers"))

    def get_auth_key(self, descriptor: ResourceDescriptor) -> str:
        """
        Functions 호스트 admin API 용 토큰.
        """
        response = self._session.request("GET", resource_url(descriptor.id, "functions/admin/token"))
        if response.status_code >= 400:
            raise DeploymentError(
                f"호스트 admin 토큰 조회 실패: {descriptor.name} {describe_response(response)}"
            )
        payload = json_or_none(response)
        return payload if isinstance(payload, str) else response.text.strip().strip('"')

    def get_master_key(self, descriptor: ResourceDescriptor) -> str:
        auth_key = self.get_auth_key(descriptor)
        url = f"https://{descriptor.default_host_name}/admin/host/systemkeys/_master"
        response = self._session.request("GET", url, token=auth_key)
        payload = json_or_none(response)
        if response.status_code >= 400 or not isinstance(payload, dict) or "value" not in payload:
            raise DeploymentError(
                f"마스터 키 조회 실패: {descriptor.name} {describe_response(response)}"
            )
        return payload["value"]
