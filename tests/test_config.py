import os

import pytest

from azure_deploy_kit.config import DeployConfig, load_env_files
from azure_deploy_kit.errors import ConfigurationError


_ALL_KEYS = [
    "AZURE_SUBSCRIPTION_ID",
    "AZURE_RESOURCE_GROUP",
    "AZURE_REGION",
    "FUNCTION_APP_NAME",
    "FUNCTION_APP_TYPE",
    "ARM_TEMPLATE_FILE",
    "ARM_TEMPLATE_PARAMETERS_FILE",
    "CLEANUP_FUNCTIONS",
    "DEPLOY_TIMEOUT_SECONDS",
]


def _base_env() -> dict[str, str]:
    return {
        "AZURE_SUBSCRIPTION_ID": "sub-1",
        "AZURE_RESOURCE_GROUP": "rg1",
        "AZURE_REGION": "westus",
        "FUNCTION_APP_NAME": "myapi",
    }


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ALL_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_missing_required_env_raises_configuration_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    env = _base_env()

    # 필수 값 중 AZURE_RESOURCE_GROUP 만 비워둔다.
    for key, value in env.items():
        if key == "AZURE_RESOURCE_GROUP":
            continue
        monkeypatch.setenv(key, value)

    with pytest.raises(ConfigurationError) as excinfo:
        DeployConfig.from_env()

    assert "AZURE_RESOURCE_GROUP" in str(excinfo.value)
    # 기존 호출자들이 ValueError 로 잡을 수 있어야 한다.
    assert isinstance(excinfo.value, ValueError)


def test_defaults_and_toggles(monkeypatch: pytest.MonkeyPatch) -> None:
    for key, value in _base_env().items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("CLEANUP_FUNCTIONS", "false")
    monkeypatch.setenv("FUNCTION_APP_TYPE", "premium")

    cfg = DeployConfig.from_env()

    assert cfg.function_app_type == "premium"
    assert cfg.arm_template_file is None
    assert cfg.deploy_infra is True
    assert cfg.cleanup_functions is False
    assert cfg.deploy_timeout_seconds == 900.0


def test_invalid_number_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    for key, value in _base_env().items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("DEPLOY_TIMEOUT_SECONDS", "soon")

    with pytest.raises(ConfigurationError) as excinfo:
        DeployConfig.from_env()

    assert "DEPLOY_TIMEOUT_SECONDS" in str(excinfo.value)


def test_parameters_file_requires_template_file(monkeypatch: pytest.MonkeyPatch) -> None:
    for key, value in _base_env().items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("ARM_TEMPLATE_PARAMETERS_FILE", "params.json")

    with pytest.raises(ConfigurationError):
        DeployConfig.from_env()


def test_later_env_files_override_earlier(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / ".env").write_text("FUNCTION_APP_TYPE=consumption\n", encoding="utf-8")
    (tmp_path / ".env.azure").write_text("FUNCTION_APP_TYPE=dedicated\n", encoding="utf-8")

    # 테스트 종료 시 원래 상태로 되돌리도록 monkeypatch 에 등록해둔다.
    monkeypatch.setenv("FUNCTION_APP_TYPE", "placeholder")
    load_env_files(str(tmp_path))

    assert os.environ["FUNCTION_APP_TYPE"] == "dedicated"
