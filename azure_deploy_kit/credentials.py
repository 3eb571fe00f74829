"""
credentials
-----------

로컬 토큰 캐시(Azure CLI accessTokens.json 형식)에서 ARM bearer 토큰을 읽는 모듈.
토큰 발급/갱신은 az login 등 외부 도구의 책임이며, 여기서는 읽기만 한다.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional

from .errors import ConfigurationError
from .logging_utils import get_logger


logger = get_logger(__name__)


class CredentialCache:
    def __init__(self, entries: List[Dict[str, Any]]) -> None:
        self._entries = list(entries)

    @classmethod
    def from_file(cls, path: str) -> "CredentialCache":
        full = os.path.expanduser(path)
        if not os.path.exists(full):
            raise ConfigurationError(
                f"토큰 캐시 파일이 없습니다: {path} (az login 으로 로그인했는지 확인하세요)"
            )
        with open(full, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"토큰 캐시 파일 파싱 실패: {path} ({e})") from e

        if isinstance(data, dict):
            data = data.get("entries", [])
        if not isinstance(data, list):
            raise ConfigurationError(f"토큰 캐시 형식이 올바르지 않습니다: {path}")

        logger.debug("토큰 캐시 로드: %s (entries=%d)", path, len(data))
        return cls(data)

    def entries_for(self, account: Optional[str] = None) -> List[Dict[str, Any]]:
        if not account:
            return list(self._entries)
        wanted = account.lower()
        return [e for e in self._entries if str(e.get("userId", "")).lower() == wanted]

    def access_token(self, account: Optional[str] = None) -> str:
        """
        계정의 첫 번째 캐시 항목의 accessToken 을 반환한다.
        """
        entries = self.entries_for(account)
        if not entries or not entries[0].get("accessToken"):
            target = account or "(any)"
            raise ConfigurationError(f"토큰 캐시에 사용할 수 있는 토큰이 없습니다: account={target}")
        return entries[0]["accessToken"]
