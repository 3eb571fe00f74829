"""
arm_templates
-------------

배포에 사용할 ARM 템플릿을 결정하고 렌더링하는 모듈.

- 사용자가 ARM_TEMPLATE_FILE 로 템플릿을 직접 지정했다면 그 템플릿을 그대로 사용한다.
- 그렇지 않으면 FUNCTION_APP_TYPE 힌트로 잘 알려진 프로필(consumption/premium/dedicated)을 고르고,
  패키지에 포함된 템플릿에 파라미터를 채워 넣는다.
"""

from __future__ import annotations

import json
import os
import re
from importlib import resources
from typing import Any, Callable, Dict, Mapping, Optional

from .config import DeployConfig
from .errors import ConfigurationError
from .logging_utils import get_logger
from .models import DeploymentProfile, ExplicitTemplateConfig, TemplateSpec


logger = get_logger(__name__)


TEMPLATE_PACKAGE = "azure_deploy_kit.templates"

# 프로필 -> 패키지 템플릿 파일
PROFILE_TEMPLATES: Dict[DeploymentProfile, str] = {
    DeploymentProfile.CONSUMPTION: "consumption.json",
    DeploymentProfile.PREMIUM: "premium.json",
    DeploymentProfile.DEDICATED: "dedicated.json",
}


def load_packaged_template(filename: str) -> Dict[str, Any]:
    try:
        with resources.files(TEMPLATE_PACKAGE).joinpath(filename).open("r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"패키지에서 템플릿 {filename} 을(를) 찾을 수 없습니다.") from e


def _read_json(path: str) -> Any:
    full = os.path.expanduser(path)
    if not os.path.exists(full):
        raise ConfigurationError(f"템플릿 파일이 없습니다: {path}")
    with open(full, "r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"JSON 파싱 실패: {path} ({e})") from e


def load_template_file(template_path: str,
                       parameters_path: Optional[str] = None) -> ExplicitTemplateConfig:
    """
    ARM_TEMPLATE_FILE / ARM_TEMPLATE_PARAMETERS_FILE 을 읽어 ExplicitTemplateConfig 로 만든다.

    파라미터 파일은 ARM 형식({"parameters": {"x": {"value": 1}}})과
    단순 dict({"x": 1}) 둘 다 허용한다.
    """
    template = _read_json(template_path)
    if not isinstance(template, dict):
        raise ConfigurationError(f"ARM 템플릿은 JSON 객체여야 합니다: {template_path}")

    parameters: Dict[str, Any] = {}
    if parameters_path:
        raw = _read_json(parameters_path)
        if not isinstance(raw, dict):
            raise ConfigurationError(f"파라미터 파일은 JSON 객체여야 합니다: {parameters_path}")
        raw = raw.get("parameters", raw)
        for key, value in raw.items():
            if isinstance(value, dict) and "value" in value:
                value = value["value"]
            parameters[key] = value

    return ExplicitTemplateConfig(template=template, parameters=parameters)


def _storage_account_name(app_name: str) -> str:
    # 스토리지 계정 이름: 소문자/숫자만, 3~24자
    cleaned = re.sub(r"[^a-z0-9]", "", app_name.lower())
    return (cleaned[:22] or "func") + "sa"


def default_parameters(cfg: DeployConfig) -> Dict[str, Any]:
    """잘 알려진 템플릿에 채울 기본 파라미터."""
    return {
        "functionAppName": cfg.function_app_name,
        "location": cfg.region,
        "storageAccountName": cfg.storage_account_name or _storage_account_name(cfg.function_app_name),
        "appServicePlanName": cfg.app_service_plan_name or f"{cfg.function_app_name}-plan",
        "functionsWorkerRuntime": cfg.functions_worker_runtime,
    }


class TemplateResolver:
    """
    ARM 템플릿 선택기. 원격 호출 없이 이미 로드된 문서만 다룬다.
    """

    def __init__(
        self,
        base_parameters: Optional[Mapping[str, Any]] = None,
        loader: Callable[[str], Dict[str, Any]] = load_packaged_template,
    ) -> None:
        self._base_parameters = dict(base_parameters or {})
        self._loader = loader

    def resolve(self,
                explicit_config: Optional[ExplicitTemplateConfig] = None,
                profile_hint: Optional[str] = None) -> TemplateSpec:
        if explicit_config is not None:
            if profile_hint:
                logger.info("ARM 템플릿이 직접 지정되어 FUNCTION_APP_TYPE=%s 는 무시합니다.", profile_hint)
            return self.from_config(explicit_config)

        profile = DeploymentProfile.from_hint(profile_hint)
        if profile is None:
            if profile_hint:
                logger.warning(
                    "알 수 없는 FUNCTION_APP_TYPE 값입니다: %r (기본 프로필 %s 사용)",
                    profile_hint,
                    DeploymentProfile.default().value,
                )
            profile = DeploymentProfile.default()
        return self.from_profile(profile)

    def from_config(self, config: ExplicitTemplateConfig) -> TemplateSpec:
        logger.info("사용자 지정 ARM 템플릿을 사용합니다.")
        return TemplateSpec(
            template=config.template,
            parameters=dict(config.parameters or {}),
        )

    def from_profile(self, profile: DeploymentProfile) -> TemplateSpec:
        filename = PROFILE_TEMPLATES.get(profile)
        if filename is None:
            raise ConfigurationError(f"등록된 템플릿이 없는 배포 프로필입니다: {profile!r}")

        logger.info("잘 알려진 ARM 템플릿을 사용합니다: profile=%s", profile.value)
        template = self._loader(filename)

        # ARM 은 템플릿에 선언되지 않은 파라미터를 거부하므로 선언된 것만 채운다.
        declared = template.get("parameters") or {}
        parameters = {k: v for k, v in self._base_parameters.items() if k in declared}
        return TemplateSpec(template=template, parameters=parameters)
