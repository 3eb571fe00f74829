import json

import pytest

from azure_deploy_kit import arm_templates
from azure_deploy_kit.arm_templates import TemplateResolver, default_parameters, load_template_file
from azure_deploy_kit.config import DeployConfig
from azure_deploy_kit.errors import ConfigurationError
from azure_deploy_kit.models import DeploymentProfile, ExplicitTemplateConfig


def _cfg() -> DeployConfig:
    return DeployConfig(
        subscription_id="sub-1",
        resource_group="rg1",
        region="westus",
        function_app_name="My-Api",
    )


def _fake_loader(calls: list):
    def loader(filename: str) -> dict:
        calls.append(filename)
        return {"parameters": {"functionAppName": {}, "location": {}}, "name": filename}

    return loader


def test_explicit_config_wins_over_profile_hint() -> None:
    calls: list = []
    resolver = TemplateResolver({"functionAppName": "myapi"}, loader=_fake_loader(calls))
    template = {"resources": [{"type": "Microsoft.Web/sites"}]}

    spec = resolver.resolve(ExplicitTemplateConfig(template=template), profile_hint="premium")

    assert spec.template == template
    assert spec.parameters == {}
    assert calls == []


def test_explicit_config_keeps_its_parameters() -> None:
    resolver = TemplateResolver({"functionAppName": "ignored"})
    config = ExplicitTemplateConfig(template={"resources": []}, parameters={"sku": "EP2"})

    spec = resolver.resolve(config)

    assert spec.parameters == {"sku": "EP2"}


@pytest.mark.parametrize(
    "hint, expected_file",
    [
        ("consumption", "consumption.json"),
        ("premium", "premium.json"),
        ("Dedicated", "dedicated.json"),
        (None, "consumption.json"),
        ("serverless-gold", "consumption.json"),
    ],
)
def test_profile_hint_selects_template(hint, expected_file) -> None:
    calls: list = []
    resolver = TemplateResolver(loader=_fake_loader(calls))

    spec = resolver.resolve(None, profile_hint=hint)

    assert calls == [expected_file]
    assert spec.template["name"] == expected_file


def test_only_declared_parameters_are_rendered() -> None:
    calls: list = []
    resolver = TemplateResolver(
        {"functionAppName": "myapi", "location": "westus", "storageAccountName": "unused"},
        loader=_fake_loader(calls),
    )

    spec = resolver.from_profile(DeploymentProfile.PREMIUM)

    assert spec.parameters == {"functionAppName": "myapi", "location": "westus"}


def test_unregistered_profile_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delitem(arm_templates.PROFILE_TEMPLATES, DeploymentProfile.DEDICATED)
    resolver = TemplateResolver()

    with pytest.raises(ConfigurationError):
        resolver.from_profile(DeploymentProfile.DEDICATED)


@pytest.mark.parametrize("profile", list(DeploymentProfile))
def test_packaged_templates_declare_default_parameters(profile) -> None:
    template = arm_templates.load_packaged_template(arm_templates.PROFILE_TEMPLATES[profile])

    declared = set(template["parameters"])
    assert set(default_parameters(_cfg())) <= declared


def test_default_parameters_derive_storage_account_name() -> None:
    params = default_parameters(_cfg())

    assert params["functionAppName"] == "My-Api"
    assert params["storageAccountName"] == "myapisa"
    assert params["appServicePlanName"] == "My-Api-plan"


def test_load_template_file_accepts_arm_parameter_format(tmp_path) -> None:
    template_path = tmp_path / "template.json"
    params_path = tmp_path / "parameters.json"
    template_path.write_text(json.dumps({"resources": []}), encoding="utf-8")
    params_path.write_text(
        json.dumps({"parameters": {"sku": {"value": "EP1"}, "count": 2}}),
        encoding="utf-8",
    )

    config = load_template_file(str(template_path), str(params_path))

    assert config.template == {"resources": []}
    assert config.parameters == {"sku": "EP1", "count": 2}


def test_load_template_file_missing_raises(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        load_template_file(str(tmp_path / "nope.json"))
