"""Reviewer clients - LLM 제공자 어댑터."""

from .anthropic import AnthropicReviewerClient
from .base import ReviewerClient, ReviewSession
from .openai import OpenAIReviewerClient

__all__ = [
    "ReviewerClient",
    "ReviewSession",
    "OpenAIReviewerClient",
    "AnthropicReviewerClient",
    "get_client",
    "resolve_provider",
]

# 모델명 접두사 -> 제공자
_PROVIDER_PREFIXES: dict[str, str] = {
    "claude": "anthropic",
    "gpt": "openai",
    "o1": "openai",
    "o3": "openai",
    "o4": "openai",
}


def resolve_provider(model: str, provider_map: dict[str, str] | None = None) -> str:
    """모델명으로 제공자 결정.

    Args:
        model: 모델명 (예: "gpt-4o", "claude-3-5-sonnet-latest")
        provider_map: 모델명 -> 제공자 강제 지정. 접두사 규칙보다 우선.

    Returns:
        "openai" 또는 "anthropic". 알 수 없는 모델은 "openai".

    Examples:
        >>> resolve_provider("claude-3-opus-20240229")
        'anthropic'
        >>> resolve_provider("my-model", {"my-model": "anthropic"})
        'anthropic'
    """
    if provider_map and model in provider_map:
        return provider_map[model].lower()

    name = model.lower()
    for prefix, provider in _PROVIDER_PREFIXES.items():
        if name.startswith(prefix):
            return provider
    return "openai"


def get_client(provider: str = "openai", **kwargs) -> ReviewerClient:
    """제공자에 맞는 리뷰어 클라이언트 반환.

    Args:
        provider: LLM 제공자. "openai" 또는 "anthropic".
        **kwargs: 클라이언트 생성에 전달할 추가 파라미터
            (api_key, max_tokens, temperature)

    Returns:
        ReviewerClient 인스턴스

    Raises:
        ValueError: 지원하지 않는 제공자인 경우.
    """
    provider = provider.lower()

    if provider == "openai":
        return OpenAIReviewerClient(**kwargs)
    elif provider == "anthropic":
        return AnthropicReviewerClient(**kwargs)
    else:
        raise ValueError(
            f"지원하지 않는 LLM 제공자입니다: {provider}. "
            "'openai' 또는 'anthropic'을 사용하세요."
        )
