"""
azure_kudu
----------

Kudu(SCM) 엔드포인트로 패키징된 zip 을 업로드하는 모듈.

업로드 호스트는 고정 설정이 아니라 사이트의 enabledHostNames 에서 고른다.
App Service Environment 안의 앱은 SCM 호스트가 <app>.scm.<ase>.p.azurewebsites.net 처럼
기본 도메인과 다르기 때문이다.
"""

from __future__ import annotations

import os
from typing import Iterator, Optional

import httpx

from .azure_arm import ArmSession
from .errors import ArtifactError, ConfigurationError, TransferError, describe_response
from .logging_utils import get_logger
from .models import ResourceDescriptor, UploadRequest


logger = get_logger(__name__)


SCM_LABEL = "scm"
ZIP_DEPLOY_PATH = "/api/zipdeploy/"
CHUNK_SIZE = 1024 * 1024


def _is_scm_hostname(hostname: str) -> bool:
    labels = hostname.lower().split(".")
    # <app>.scm.<platform-domain>: 첫 라벨(앱 이름) 뒤에 scm 라벨이 와야 한다.
    return SCM_LABEL in labels[1:-1]


def artifact_available(path: Optional[str]) -> bool:
    """업로드할 바이트가 있는 아티팩트 파일인지 확인한다. 빈 zip 도 없는 것으로 본다."""
    if not path:
        return False
    full = os.path.expanduser(path)
    return os.path.isfile(full) and os.path.getsize(full) > 0


def _iter_file(path: str, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            yield chunk


class CodeTransferClient:
    def __init__(self, session: ArmSession) -> None:
        self._session = session

    def resolve_upload_endpoint(self, descriptor: ResourceDescriptor) -> str:
        for hostname in descriptor.enabled_host_names:
            if _is_scm_hostname(hostname):
                return f"https://{hostname}"
        raise ConfigurationError(
            f"SCM 호스트를 찾을 수 없습니다: {descriptor.name} (enabledHostNames={descriptor.enabled_host_names})"
        )

    def upload(self, descriptor: ResourceDescriptor, artifact_path: Optional[str]) -> httpx.Response:
        """
        zip 아티팩트를 {scm}/api/zipdeploy/ 로 스트리밍 업로드한다.
        아티팩트가 없으면 요청을 만들기 전에 ArtifactError 를 던진다.
        """
        if not artifact_available(artifact_path):
            raise ArtifactError(
                f"업로드할 아티팩트가 없습니다: {artifact_path or '(ARTIFACT_PATH 미설정)'} "
                "(패키징 단계를 먼저 실행하세요)"
            )
        artifact_path = os.path.expanduser(artifact_path)

        endpoint = self.resolve_upload_endpoint(descriptor)
        request = UploadRequest(
            method="POST",
            uri=endpoint + ZIP_DEPLOY_PATH,
            headers={
                **self._session.auth_headers(),
                "Accept": "*/*",
                "Content-Type": "application/octet-stream",
            },
        )

        logger.info(
            "코드 업로드: %s -> %s (%d bytes)",
            artifact_path,
            request.uri,
            os.path.getsize(artifact_path),
        )
        response = self.send_file(request, artifact_path)
        logger.info("코드 업로드 완료: %s", descriptor.name)
        return response

    def send_file(self, request: UploadRequest, artifact_path: str) -> httpx.Response:
        try:
            response = self._session.client.request(
                request.method,
                request.uri,
                headers=request.headers,
                content=_iter_file(artifact_path),
            )
        except httpx.HTTPError as e:
            raise TransferError(f"코드 업로드 요청 실패: {request.uri} ({e})") from e

        if response.status_code >= 400:
            raise TransferError(
                f"코드 업로드가 거부되었습니다: {request.uri} {describe_response(response)}"
            )
        return response
