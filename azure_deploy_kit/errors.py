"""
errors
------

배포 과정에서 발생하는 예외 분류.

- ConfigurationError: 잘못되었거나 누락된 설정 (템플릿 프로필, 아티팩트, SCM 호스트 등). 재시도하지 않는다.
- DeploymentError: 컨트롤 플레인(ARM)이 템플릿을 거부했거나 리소스 조회가 실패한 경우.
- TransferError: 코드 업로드 엔드포인트에 도달하지 못했거나 업로드가 거부된 경우.
"""

from __future__ import annotations

from textwrap import shorten
from typing import Optional

import httpx


class DeployKitError(RuntimeError):
    """azure_deploy_kit 공통 예외."""


class ConfigurationError(DeployKitError, ValueError):
    pass


class ArtifactError(ConfigurationError):
    """패키징된 코드 아티팩트가 없을 때."""


class DeploymentError(DeployKitError):
    pass


class TransferError(DeployKitError):
    pass


def describe_response(response: Optional[httpx.Response]) -> str:
    """
    에러 메시지에 붙일 수 있도록 응답 상태/본문을 짧게 요약한다.
    """
    if response is None:
        return ""
    body = (response.text or "").strip()
    detail = f"(status={response.status_code})"
    if body:
        detail += "\nbody:\n" + shorten(body, width=2000)
    return detail
