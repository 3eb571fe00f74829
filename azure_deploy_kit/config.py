from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, List

from dotenv import load_dotenv

from .errors import ConfigurationError


ENV_FILES_DEFAULT_ORDER = [".env", ".env.azure", ".env.secrets"]

DEFAULT_TOKEN_CACHE_FILE = os.path.join("~", ".azure", "accessTokens.json")


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    후순위 파일이 같은 키를 덮어쓴다.
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=True)


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "y"}


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} 값이 숫자가 아닙니다: {raw!r}") from e


@dataclass
class DeployConfig:
    # 필수 공통
    subscription_id: str
    resource_group: str
    region: str
    function_app_name: str

    # 인프라 템플릿: armTemplate 파일이 있으면 항상 우선한다.
    function_app_type: Optional[str] = None
    arm_template_file: Optional[str] = None
    arm_template_parameters_file: Optional[str] = None

    # 코드/인증
    artifact_path: Optional[str] = None
    azure_account: Optional[str] = None
    token_cache_file: str = DEFAULT_TOKEN_CACHE_FILE

    # 잘 알려진 템플릿 파라미터
    storage_account_name: Optional[str] = None
    app_service_plan_name: Optional[str] = None
    functions_worker_runtime: str = "python"

    # 단계 토글
    deploy_infra: bool = True
    cleanup_functions: bool = True
    upload_code: bool = True
    sync_triggers: bool = True

    # 타이밍
    deployment_name: Optional[str] = None
    deploy_timeout_seconds: float = 900.0
    deploy_poll_interval_seconds: float = 5.0
    http_timeout_seconds: float = 120.0

    @classmethod
    def from_env(cls) -> "DeployConfig":
        # 필수값
        missing: List[str] = []
        def req(name: str) -> str:
            val = os.getenv(name)
            if not val:
                missing.append(name)
            return val or ""

        cfg = cls(
            subscription_id=req("AZURE_SUBSCRIPTION_ID"),
            resource_group=req("AZURE_RESOURCE_GROUP"),
            region=req("AZURE_REGION"),
            function_app_name=req("FUNCTION_APP_NAME"),
            function_app_type=os.getenv("FUNCTION_APP_TYPE") or None,
            arm_template_file=os.getenv("ARM_TEMPLATE_FILE") or None,
            arm_template_parameters_file=os.getenv("ARM_TEMPLATE_PARAMETERS_FILE") or None,
            artifact_path=os.getenv("ARTIFACT_PATH") or None,
            azure_account=os.getenv("AZURE_ACCOUNT") or None,
            token_cache_file=os.getenv("AZURE_TOKEN_CACHE_FILE", DEFAULT_TOKEN_CACHE_FILE),
            storage_account_name=os.getenv("STORAGE_ACCOUNT_NAME") or None,
            app_service_plan_name=os.getenv("APP_SERVICE_PLAN_NAME") or None,
            functions_worker_runtime=os.getenv("FUNCTIONS_WORKER_RUNTIME", "python"),
            deploy_infra=_get_bool("DEPLOY_INFRA", True),
            cleanup_functions=_get_bool("CLEANUP_FUNCTIONS", True),
            upload_code=_get_bool("UPLOAD_CODE", True),
            sync_triggers=_get_bool("SYNC_TRIGGERS", True),
            deployment_name=os.getenv("DEPLOYMENT_NAME") or None,
            deploy_timeout_seconds=_get_float("DEPLOY_TIMEOUT_SECONDS", 900.0),
            deploy_poll_interval_seconds=_get_float("DEPLOY_POLL_INTERVAL_SECONDS", 5.0),
            http_timeout_seconds=_get_float("HTTP_TIMEOUT_SECONDS", 120.0),
        )

        if missing:
            raise ConfigurationError(
                "필수 환경변수가 누락되었습니다: " + ", ".join(sorted(set(missing)))
            )

        if cfg.arm_template_parameters_file and not cfg.arm_template_file:
            raise ConfigurationError(
                "ARM_TEMPLATE_PARAMETERS_FILE 은 ARM_TEMPLATE_FILE 과 함께 설정해야 합니다."
            )

        return cfg
