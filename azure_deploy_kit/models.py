"""
models
------

배포 단계 사이에서 값으로 전달되는 데이터 타입들.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class DeploymentProfile(str, Enum):
    CONSUMPTION = "consumption"
    PREMIUM = "premium"
    DEDICATED = "dedicated"

    @classmethod
    def default(cls) -> "DeploymentProfile":
        return cls.CONSUMPTION

    @classmethod
    def from_hint(cls, hint: Optional[str]) -> Optional["DeploymentProfile"]:
        """
        FUNCTION_APP_TYPE 같은 문자열 힌트를 프로필로 매핑한다.
        알 수 없는 값이면 None 을 반환하고, 기본값 적용은 호출자가 결정한다.
        """
        if not hint:
            return None
        try:
            return cls(hint.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class ExplicitTemplateConfig:
    """사용자가 직접 지정한 ARM 템플릿 (파일에서 이미 로드된 상태)."""

    template: Mapping[str, Any]
    parameters: Optional[Mapping[str, Any]] = None


@dataclass(frozen=True)
class TemplateSpec:
    template: Mapping[str, Any]
    parameters: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ResourceDescriptor:
    id: str
    name: str
    default_host_name: str
    enabled_host_names: List[str] = field(default_factory=list)
    error: Optional[Mapping[str, Any]] = None

    @classmethod
    def from_arm(cls, payload: Mapping[str, Any]) -> "ResourceDescriptor":
        # ARM 응답은 properties 아래에 호스트 정보가 있지만, SDK 가 펼쳐둔 형태도 허용한다.
        props = payload.get("properties") or {}
        default_host = props.get("defaultHostName") or payload.get("defaultHostName") or ""
        enabled = props.get("enabledHostNames") or payload.get("enabledHostNames") or []
        return cls(
            id=payload.get("id", ""),
            name=payload.get("name", ""),
            default_host_name=default_host,
            enabled_host_names=list(enabled),
            error=payload.get("error"),
        )


@dataclass(frozen=True)
class FunctionEntry:
    name: str
    properties: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_arm(cls, raw: Mapping[str, Any]) -> "FunctionEntry":
        props = dict(raw.get("properties") or {})
        # ARM 의 name 은 "<app>/<function>" 형태
        name = props.get("name") or str(raw.get("name", "")).split("/")[-1]
        return cls(name=name, properties=props)


@dataclass
class UploadRequest:
    method: str
    uri: str
    headers: Dict[str, str] = field(default_factory=dict)
