"""
azure_deployment
----------------

ARM 템플릿 배포 제출/완료 대기와 Function App(사이트) 조회를 담당하는 모듈.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from .azure_arm import (
    DEPLOYMENTS_API_VERSION,
    MANAGEMENT_URL,
    WEB_API_VERSION,
    ArmSession,
    json_or_none,
)
from .errors import DeploymentError, describe_response
from .logging_utils import get_logger
from .models import ResourceDescriptor, TemplateSpec


logger = get_logger(__name__)


NOT_FOUND_CODE = "ResourceNotFound"

_TERMINAL_FAILURE_STATES = {"Failed", "Canceled"}


def _arm_parameters(parameters: Dict[str, Any]) -> Dict[str, Any]:
    # ARM 배포 API 는 {"name": {"value": ...}} 형태를 요구한다.
    return {k: {"value": v} for k, v in parameters.items()}


class DeploymentClient:
    def __init__(
        self,
        session: ArmSession,
        subscription_id: str,
        resource_group: str,
        *,
        timeout_seconds: float = 900.0,
        poll_interval_seconds: float = 5.0,
    ) -> None:
        self._session = session
        self._subscription_id = subscription_id
        self._resource_group = resource_group
        self._timeout_seconds = timeout_seconds
        self._poll_interval_seconds = poll_interval_seconds

    def _deployment_url(self, deployment_name: str) -> str:
        return (
            f"{MANAGEMENT_URL}/subscriptions/{self._subscription_id}"
            f"/resourcegroups/{self._resource_group}"
            f"/providers/Microsoft.Resources/deployments/{deployment_name}"
            f"?api-version={DEPLOYMENTS_API_VERSION}"
        )

    def _site_url(self, name: str) -> str:
        return (
            f"{MANAGEMENT_URL}/subscriptions/{self._subscription_id}"
            f"/resourceGroups/{self._resource_group}"
            f"/providers/Microsoft.Web/sites/{name}"
            f"?api-version={WEB_API_VERSION}"
        )

    def deploy(self, spec: TemplateSpec, deployment_name: str) -> None:
        """
        템플릿을 제출하고 provisioningState 가 종료 상태가 될 때까지 기다린다.
        재시도는 하지 않는다.
        """
        url = self._deployment_url(deployment_name)
        body = {
            "properties": {
                "mode": "Incremental",
                "template": spec.template,
                "parameters": _arm_parameters(dict(spec.parameters)),
            }
        }

        logger.info(
            "ARM 템플릿 배포 제출: resource_group=%s deployment=%s",
            self._resource_group,
            deployment_name,
        )
        response = self._session.request("PUT", url, json=body)
        if response.status_code >= 400:
            raise DeploymentError(
                f"ARM 템플릿 배포가 거부되었습니다: {deployment_name} {describe_response(response)}"
            )

        self._wait_for_deployment(url, deployment_name, json_or_none(response))

    def _wait_for_deployment(self, url: str, deployment_name: str, payload: Optional[dict]) -> None:
        deadline = time.monotonic() + self._timeout_seconds
        while True:
            props = (payload or {}).get("properties") or {}
            state = props.get("provisioningState")
            logger.debug("배포 상태: %s -> %s", deployment_name, state)

            if state == "Succeeded":
                logger.info("ARM 템플릿 배포 완료: %s", deployment_name)
                return
            if state in _TERMINAL_FAILURE_STATES:
                raise DeploymentError(
                    f"ARM 템플릿 배포 실패: {deployment_name} (state={state}) error={props.get('error')}"
                )
            if time.monotonic() >= deadline:
                raise DeploymentError(
                    f"ARM 템플릿 배포가 {self._timeout_seconds}초 안에 끝나지 않았습니다: "
                    f"{deployment_name} (state={state})"
                )

            time.sleep(self._poll_interval_seconds)
            response = self._session.request("GET", url)
            if response.status_code >= 400:
                raise DeploymentError(
                    f"배포 상태 조회 실패: {deployment_name} {describe_response(response)}"
                )
            payload = json_or_none(response)

    def get_resource(self, name: str) -> Optional[ResourceDescriptor]:
        """
        리소스 그룹 안의 Function App 을 조회한다.

        응답의 error.code 가 ResourceNotFound 이면 None 을 반환하고,
        그 외의 오류는 DeploymentError 로 올린다.
        """
        response = self._session.request("GET", self._site_url(name))
        payload = json_or_none(response)

        error = payload.get("error") if isinstance(payload, dict) else None
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            if code == NOT_FOUND_CODE:
                logger.info("Function App 이 존재하지 않습니다: %s", name)
                return None
            raise DeploymentError(
                f"Function App 조회 실패: {name} (code={code}) {describe_response(response)}"
            )

        if response.status_code >= 400 or not isinstance(payload, dict):
            raise DeploymentError(f"Function App 조회 실패: {name} {describe_response(response)}")

        return ResourceDescriptor.from_arm(payload)
