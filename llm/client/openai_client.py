"""OpenAI LLM 클라이언트 래퍼.

특징
- 구조화(JSON) 출력 강제 및 파싱 → 호출자가 pydantic 스키마로 검증
- 재시도/타임아웃/비용 상한(요청당) 적용
- Provider 주입으로 테스트 시 네트워크/실제 의존성 제거
"""

from __future__ import annotations

import json
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from llm.settings import LLMSettings, get_llm_settings


class LLMError(Exception):
    """LLM 호출 관련 기본 오류."""


class TransientLLMError(LLMError):
    """일시 오류(재시도 대상)."""


class PermanentLLMError(LLMError):
    """영구 오류(재시도 불가)."""


ProviderFn = Callable[[Dict[str, Any]], Dict[str, Any]]


_PRICE_PER_1K_TOKENS_USD: Dict[str, Dict[str, float]] = {
    "gpt-4o-mini": {"prompt": 0.00015, "completion": 0.0006},
    "gpt-4o": {"prompt": 0.0025, "completion": 0.0100},
}


def _estimate_cost_usd(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    price = _PRICE_PER_1K_TOKENS_USD.get(model, _PRICE_PER_1K_TOKENS_USD["gpt-4o"])
    return (
        (prompt_tokens / 1000.0) * price["prompt"]
        + (completion_tokens / 1000.0) * price["completion"]
    )


def _estimate_tokens_from_messages(messages: List[dict]) -> int:
    """길이 기반 보수적 토큰 추정."""
    total_chars = 0
    for message in messages:
        content = message.get("content", "") if isinstance(message, dict) else ""
        total_chars += len(str(content))
    return max(1, math.ceil(total_chars / 4))


def _load_structured_content(content: str, attempts_left: int) -> Dict[str, Any]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        if attempts_left > 0:
            raise TransientLLMError("LLM 응답 JSON 파싱 실패") from exc
        raise PermanentLLMError("LLM 응답 JSON 파싱 실패") from exc
    if not isinstance(data, dict):
        raise PermanentLLMError("LLM 응답이 JSON 객체가 아닙니다.")
    return data


@dataclass(frozen=True)
class StructuredCompletion:
    data: Dict[str, Any]
    model: str
    prompt_tokens: int
    completion_tokens: int
    cost: float


@dataclass(frozen=True)
class OpenAIClient:
    settings: LLMSettings
    provider: Optional[ProviderFn] = None

    @classmethod
    def from_env(cls, provider: Optional[ProviderFn] = None) -> "OpenAIClient":
        return cls(get_llm_settings(), provider=provider)

    def _get_provider(self) -> ProviderFn:
        if self.provider is not None:
            return self.provider
        # 지연 import: 라이브러리가 없으면 명확한 에러
        try:
            from openai import OpenAI  # type: ignore
        except ImportError as exc:  # pragma: no cover - 테스트에선 provider 주입
            raise PermanentLLMError("openai 라이브러리를 찾을 수 없습니다.") from exc

        client = OpenAI(
            api_key=self.settings.openai_api_key,
            timeout=float(self.settings.llm_request_timeout_seconds),
            max_retries=0,
        )

        def _call(payload: Dict[str, Any]) -> Dict[str, Any]:  # pragma: no cover - 네트워크 미사용
            resp = client.chat.completions.create(**payload)
            # 통일된 dict 형태로 변환
            return {
                "choices": [
                    {
                        "message": {"content": resp.choices[0].message.content},
                    }
                ],
                "usage": {
                    "prompt_tokens": getattr(resp.usage, "prompt_tokens", 0),
                    "completion_tokens": getattr(resp.usage, "completion_tokens", 0),
                },
                "model": resp.model,
            }

        return _call

    def _build_payload(self, messages: List[dict], max_tokens: Optional[int]) -> Dict[str, Any]:
        return {
            "model": self.settings.llm_model,
            "messages": messages,
            "temperature": float(self.settings.llm_temperature),
            "max_tokens": int(max_tokens or self.settings.llm_max_tokens),
            "response_format": {"type": "json_object"},
            # 타임아웃은 provider 구현/transport 레벨에서 사용
        }

    def complete_json(self, messages: List[dict], *, max_tokens: Optional[int] = None) -> StructuredCompletion:
        """Run a chat completion that must answer with a single JSON object."""
        payload = self._build_payload(messages, max_tokens)
        estimated = _estimate_cost_usd(
            payload["model"], _estimate_tokens_from_messages(messages), payload["max_tokens"]
        )
        if estimated > float(self.settings.llm_cost_limit_usd):
            raise PermanentLLMError("예상 비용 상한 초과")
        provider = self._get_provider()

        max_attempts = int(self.settings.llm_retry_max_attempts)
        timeout = float(self.settings.llm_request_timeout_seconds)
        attempts = 0
        last_exc: Optional[Exception] = None
        start = time.monotonic()
        while attempts <= max_attempts:
            attempts += 1
            try:
                try:
                    resp = provider(payload)
                except LLMError:
                    raise
                except Exception as exc:
                    raise TransientLLMError(f"LLM provider 호출 실패: {exc}") from exc
                model = resp.get("model") or self.settings.llm_model
                usage = resp.get("usage") or {}
                prompt_tokens = int(usage.get("prompt_tokens", 0))
                completion_tokens = int(usage.get("completion_tokens", 0))
                cost = _estimate_cost_usd(model, prompt_tokens, completion_tokens)
                if cost > float(self.settings.llm_cost_limit_usd):
                    raise PermanentLLMError("LLM 비용 상한 초과")

                content = resp.get("choices", [{}])[0].get("message", {}).get("content") or ""
                data = _load_structured_content(content, max_attempts - attempts + 1)
                return StructuredCompletion(
                    data=data,
                    model=model,
                    prompt_tokens=prompt_tokens,
                    completion_tokens=completion_tokens,
                    cost=cost,
                )
            except TransientLLMError as exc:
                last_exc = exc
                if time.monotonic() - start > timeout:
                    # 타임아웃은 재시도 대신 종료
                    raise TransientLLMError("LLM 요청 타임아웃 초과") from exc
                continue

        assert last_exc is not None
        raise TransientLLMError(f"LLM 호출 재시도 한도 초과: {last_exc}") from last_exc
