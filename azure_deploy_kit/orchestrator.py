from __future__ import annotations

import time
from contextlib import contextmanager
from enum import Enum
from typing import Iterable, Iterator, List, Optional

import httpx

from .arm_templates import TemplateResolver, default_parameters, load_template_file
from .azure_arm import ArmSession
from .azure_deployment import DeploymentClient
from .azure_functions_registry import FunctionRegistryClient
from .azure_kudu import CodeTransferClient, artifact_available
from .config import DeployConfig
from .credentials import CredentialCache
from .errors import ArtifactError, ConfigurationError, DeployKitError, DeploymentError
from .logging_utils import get_logger
from .models import DeploymentProfile, FunctionEntry, ResourceDescriptor


logger = get_logger(__name__)
# 단계 전환/원격 응답 같은 상세 로그. 진행 로그(logger)와 섞이지 않게 분리한다.
trace_logger = get_logger(__name__ + ".trace")

# CLI 등에서 사용할 수 있도록 단계 이름을 상수로 노출 (실행 순서)
ALL_STEPS: List[str] = [
    "infra",
    "cleanup",
    "upload",
    "sync",
]


class DeployStage(str, Enum):
    RESOLVING = "resolving"
    DEPLOYING = "deploying"
    FETCHING = "fetching"
    CLEANING_UP = "cleaning_up"
    UPLOADING = "uploading"
    SYNCING = "syncing"
    DONE = "done"


def _step_enabled(name: str, cfg: DeployConfig) -> bool:
    if name == "infra":
        return cfg.deploy_infra
    if name == "cleanup":
        return cfg.cleanup_functions
    if name == "upload":
        return cfg.upload_code
    if name == "sync":
        return cfg.sync_triggers
    return False


def _filter_steps(cfg: DeployConfig, only_steps: Optional[Iterable[str]]) -> List[str]:
    """
    토글/only_steps 에 따라 실제 실행 대상 단계 목록을 결정한다. 순서는 항상 ALL_STEPS 순서.
    """
    if only_steps:
        requested = {s for s in only_steps}
        return [s for s in ALL_STEPS if s in requested and _step_enabled(s, cfg)]
    return [s for s in ALL_STEPS if _step_enabled(s, cfg)]


def _deployment_name(cfg: DeployConfig) -> str:
    if cfg.deployment_name:
        return cfg.deployment_name
    return f"{cfg.function_app_name}-deployment-{time.strftime('%Y%m%d%H%M%S', time.gmtime())}"


def format_function_line(entry: FunctionEntry, default_host_name: str) -> str:
    bindings = (entry.properties.get("config") or {}).get("bindings") or []
    for binding in bindings:
        if binding.get("type") == "httpTrigger":
            methods = binding.get("methods") or []
            method_text = ",".join(m.upper() for m in methods) if methods else "ANY"
            route = binding.get("route") or entry.name
            return f"-> {entry.name}: [{method_text}] {default_host_name}/api/{route}"
    trigger = bindings[0].get("type") if bindings else "unknown"
    return f"-> {entry.name}: [{trigger}]"


class FunctionAppDeployer:
    """
    Function App 배포 흐름:
    템플릿 결정 -> ARM 배포 -> 리소스 조회 -> (기존 함수 정리) -> 코드 업로드 -> 트리거 동기화.

    각 원격 클라이언트는 생성자로 주입받는다. 실패하면 남은 단계는 실행하지 않으며 롤백도 하지 않는다.
    """

    def __init__(
        self,
        cfg: DeployConfig,
        resolver: TemplateResolver,
        deployments: DeploymentClient,
        transfer: CodeTransferClient,
        registry: FunctionRegistryClient,
    ) -> None:
        self.cfg = cfg
        self.resolver = resolver
        self.deployments = deployments
        self.transfer = transfer
        self.registry = registry
        self.stage: Optional[DeployStage] = None

    def _enter(self, stage: DeployStage) -> None:
        self.stage = stage
        trace_logger.debug("stage -> %s", stage.value)

    def deploy(self) -> ResourceDescriptor:
        self._enter(DeployStage.RESOLVING)
        explicit = None
        if self.cfg.arm_template_file:
            explicit = load_template_file(
                self.cfg.arm_template_file,
                self.cfg.arm_template_parameters_file,
            )
        spec = self.resolver.resolve(explicit, self.cfg.function_app_type)

        self._enter(DeployStage.DEPLOYING)
        self.deployments.deploy(spec, _deployment_name(self.cfg))

        self._enter(DeployStage.FETCHING)
        descriptor = self.deployments.get_resource(self.cfg.function_app_name)
        if descriptor is None:
            raise DeploymentError(
                f"배포는 성공했지만 Function App 을 찾을 수 없습니다: {self.cfg.function_app_name}"
            )
        return descriptor

    def fetch_existing(self) -> ResourceDescriptor:
        self._enter(DeployStage.FETCHING)
        descriptor = self.deployments.get_resource(self.cfg.function_app_name)
        if descriptor is None:
            raise DeploymentError(
                f"Function App 이 없습니다: {self.cfg.function_app_name} "
                "(infra 단계를 먼저 실행하세요)"
            )
        return descriptor

    def clean_up(self, descriptor: ResourceDescriptor) -> List[httpx.Response]:
        """
        현재 배포된 함수를 목록 순서대로 하나씩 삭제한다.
        새 아티팩트에 없는 함수가 남지 않도록 업로드 전에 실행한다.
        """
        self._enter(DeployStage.CLEANING_UP)
        functions = self.registry.list(descriptor)
        logger.info("기존 함수 %d개를 삭제합니다: %s", len(functions), descriptor.name)

        responses: List[httpx.Response] = []
        for entry in functions:
            logger.info("-> Deleting function: %s", entry.name)
            response = self.registry.delete(descriptor, entry.name)
            trace_logger.debug("삭제 응답 (%s): %s %s", entry.name, response.status_code, response.text)
            responses.append(response)
        return responses

    def upload_functions(self, descriptor: ResourceDescriptor) -> None:
        self._enter(DeployStage.UPLOADING)
        if not artifact_available(self.cfg.artifact_path):
            raise ArtifactError(
                f"업로드할 아티팩트가 없습니다: {self.cfg.artifact_path or '(ARTIFACT_PATH 미설정)'} "
                "(패키징 단계를 먼저 실행하세요)"
            )
        self.transfer.upload(descriptor, self.cfg.artifact_path)

    def sync_triggers(self, descriptor: ResourceDescriptor) -> httpx.Response:
        self._enter(DeployStage.SYNCING)
        logger.info("트리거 동기화: %s", descriptor.name)
        response = self.registry.sync_triggers(descriptor)
        logger.info("트리거 동기화 응답: status=%s %s", response.status_code, response.text)
        return response

    def describe_functions(self, descriptor: ResourceDescriptor) -> List[str]:
        lines = ["Deployed serverless functions:"]
        for entry in self.registry.list(descriptor):
            lines.append(format_function_line(entry, descriptor.default_host_name))
        return lines

    def run_step(self, name: str, descriptor: Optional[ResourceDescriptor]) -> ResourceDescriptor:
        if name == "infra":
            return self.deploy()
        if descriptor is None:
            descriptor = self.fetch_existing()
        if name == "cleanup":
            self.clean_up(descriptor)
        elif name == "upload":
            self.upload_functions(descriptor)
        elif name == "sync":
            self.sync_triggers(descriptor)
        else:
            raise ConfigurationError(f"알 수 없는 단계입니다: {name}")
        return descriptor

    def run(self, steps: Optional[Iterable[str]] = None) -> ResourceDescriptor:
        """
        전체 재배포: deploy -> clean_up -> upload_functions -> sync_triggers.
        """
        descriptor: Optional[ResourceDescriptor] = None
        for name in steps if steps is not None else ALL_STEPS:
            descriptor = self.run_step(name, descriptor)
        if descriptor is None:
            descriptor = self.fetch_existing()
        self.stage = DeployStage.DONE
        return descriptor


@contextmanager
def build_deployer(cfg: DeployConfig) -> Iterator[FunctionAppDeployer]:
    """
    설정으로부터 실제 HTTP 클라이언트를 가진 FunctionAppDeployer 를 만든다.
    """
    credentials = CredentialCache.from_file(cfg.token_cache_file)
    with httpx.Client(timeout=cfg.http_timeout_seconds) as client:
        session = ArmSession(client, credentials, cfg.azure_account)
        yield FunctionAppDeployer(
            cfg,
            resolver=TemplateResolver(default_parameters(cfg)),
            deployments=DeploymentClient(
                session,
                cfg.subscription_id,
                cfg.resource_group,
                timeout_seconds=cfg.deploy_timeout_seconds,
                poll_interval_seconds=cfg.deploy_poll_interval_seconds,
            ),
            transfer=CodeTransferClient(session),
            registry=FunctionRegistryClient(session),
        )


def _template_source(cfg: DeployConfig) -> str:
    if cfg.arm_template_file:
        return f"ARM_TEMPLATE_FILE ({cfg.arm_template_file})"
    profile = DeploymentProfile.from_hint(cfg.function_app_type)
    if profile is None:
        suffix = f" (알 수 없는 값 {cfg.function_app_type!r} -> 기본값)" if cfg.function_app_type else " (기본값)"
        return f"profile={DeploymentProfile.default().value}{suffix}"
    return f"profile={profile.value}"


def plan_all(cfg: DeployConfig) -> str:
    """
    현재 설정된 옵션 및 어떤 단계가 활성화/비활성화 되는지
    요약 텍스트를 리턴한다. 실제 Azure 호출은 하지 않는다.
    """
    lines: List[str] = []
    lines.append("# Deploy plan")
    lines.append(f"- subscription: {cfg.subscription_id}")
    lines.append(f"- resource_group: {cfg.resource_group}")
    lines.append(f"- region: {cfg.region}")
    lines.append(f"- function_app: {cfg.function_app_name}")
    lines.append("")

    lines.append("## Config summary")
    lines.append(f"- template: {_template_source(cfg)}")
    lines.append(f"- artifact_path: {cfg.artifact_path or '(not set)'}")
    lines.append(f"- azure_account: {cfg.azure_account or '(first cached token)'}")
    lines.append(f"- token_cache_file: {cfg.token_cache_file}")
    lines.append("")

    lines.append("## Steps")
    for name in ALL_STEPS:
        status = "ENABLED" if _step_enabled(name, cfg) else "SKIPPED"
        lines.append(f"- {name}: {status}")

    return "\n".join(lines)


def _section(lines: List[str], title: str, items: List[str]) -> None:
    lines.append("")
    lines.append(f"## {title}")
    if items:
        for s in items:
            lines.append(f"- {s}")
    else:
        lines.append("- (none)")


def apply_all(cfg: DeployConfig, only_steps: Optional[Iterable[str]] = None) -> tuple[str, bool]:
    """
    단계별로 실제 배포 로직을 호출한다. 한 단계라도 실패하면 이후 단계는 실행하지 않는다.

    Returns:
        summary: 사람이 읽기 좋은 텍스트 요약
        has_failures: 실패한 단계가 있는지 여부
    """
    executed: List[str] = []
    skipped: List[str] = []
    failed: List[str] = []
    not_run: List[str] = []
    function_lines: List[str] = []

    steps = _filter_steps(cfg, only_steps)
    logger.info("적용 대상 단계: %s", steps)

    with build_deployer(cfg) as deployer:
        descriptor: Optional[ResourceDescriptor] = None
        for name in ALL_STEPS:
            if name not in steps:
                skipped.append(name)
                continue
            if failed:
                not_run.append(name)
                continue

            logger.info("단계 실행: %s", name)
            try:
                descriptor = deployer.run_step(name, descriptor)
            except Exception:  # noqa: BLE001
                failed.append(name)
                logger.exception("단계 실행 실패: %s (stage=%s)", name, deployer.stage)
                continue
            executed.append(name)

        if descriptor is not None and not failed:
            try:
                function_lines = deployer.describe_functions(descriptor)
            except DeployKitError as e:
                logger.warning("배포된 함수 목록 조회 실패: %s", e)
            for line in function_lines:
                logger.info(line)

    lines: List[str] = []
    lines.append("# Deploy summary")
    lines.append(f"- function_app: {cfg.function_app_name}")
    lines.append(f"- resource_group: {cfg.resource_group}")

    _section(lines, "Executed steps", executed)
    _section(lines, "Skipped steps", skipped)
    _section(lines, "Failed steps", failed)
    if not_run:
        _section(lines, "Not run (aborted)", not_run)

    if function_lines:
        lines.append("")
        lines.extend(function_lines)

    return "\n".join(lines), bool(failed)


def check_all(cfg: DeployConfig, show_all: bool = False) -> tuple[str, bool]:
    """
    실제 리소스 생성 없이, 현재 설정과 Azure 리소스 상태를 점검한다.

    Returns:
        summary: 사람이 읽기 좋은 텍스트 요약
        has_issues: 크리티컬 이슈가 있는지 여부
    """
    lines: List[str] = []
    critical: List[str] = []
    warnings: List[str] = []
    ok: List[str] = []

    lines.append("# Deploy pre-check")
    lines.append(f"- function_app: {cfg.function_app_name}")
    lines.append(f"- resource_group: {cfg.resource_group}")

    # 1) 템플릿
    try:
        explicit = None
        if cfg.arm_template_file:
            explicit = load_template_file(cfg.arm_template_file, cfg.arm_template_parameters_file)
        TemplateResolver(default_parameters(cfg)).resolve(explicit, cfg.function_app_type)
        ok.append(f"Template: {_template_source(cfg)}")
    except ConfigurationError as e:
        critical.append(f"Template: {e}")

    # 2) 아티팩트
    if artifact_available(cfg.artifact_path):
        ok.append(f"Artifact: 존재함 ({cfg.artifact_path})")
    elif cfg.upload_code:
        critical.append(f"Artifact: 없음 ({cfg.artifact_path or 'ARTIFACT_PATH 미설정'})")

    # 3) 토큰 캐시 + Function App
    try:
        with build_deployer(cfg) as deployer:
            descriptor = deployer.deployments.get_resource(cfg.function_app_name)
            ok.append("Credentials: 토큰 캐시 확인")
            if descriptor is None:
                msg = f"Function App: 없음 ({cfg.function_app_name})"
                if cfg.deploy_infra:
                    warnings.append(msg + " - infra 단계에서 생성됩니다")
                else:
                    critical.append(msg + " - DEPLOY_INFRA=false")
            else:
                ok.append(f"Function App: 존재함 ({descriptor.default_host_name})")
                try:
                    endpoint = deployer.transfer.resolve_upload_endpoint(descriptor)
                    ok.append(f"SCM: {endpoint}")
                except ConfigurationError as e:
                    critical.append(f"SCM: {e}")
    except Exception as e:  # noqa: BLE001
        critical.append(f"Azure: 체크 중 예외 발생: {e}")

    if show_all:
        _section(lines, "OK", ok)

    lines.append("")
    lines.append("## Summary")
    if critical:
        lines.append("- 상태: 크리티컬 이슈가 있습니다. 배포 전 반드시 해결해야 합니다.")
    elif warnings:
        lines.append("- 상태: 경고만 있습니다. 배포 시 Function App 이 새로 생성됩니다.")
    else:
        lines.append("- 상태: 주요 이슈 없음 (배포 가능 상태로 보입니다)")

    if show_all or critical:
        _section(lines, "Critical issues", critical)
    if show_all or warnings:
        _section(lines, "Warnings", warnings)

    return "\n".join(lines), bool(critical)
