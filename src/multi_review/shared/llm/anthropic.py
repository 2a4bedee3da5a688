"""Anthropic 리뷰어 클라이언트 어댑터 구현."""

import os

from anthropic import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncAnthropic,
    InternalServerError,
    RateLimitError,
)

from multi_review.shared.errors import (
    CallTimeoutError,
    PermanentCallError,
    TransientCallError,
)

from .base import ReviewerClient, ReviewSession


class AnthropicSession(ReviewSession):
    """Anthropic messages API 기반 세션."""

    def __init__(
        self,
        client: AsyncAnthropic,
        model: str,
        system_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> None:
        self._client = client
        self._model = model
        self._system_prompt = system_prompt
        self._max_tokens = max_tokens
        self._temperature = temperature

    async def send_and_wait(self, prompt: str, timeout: float) -> str:
        """messages API 호출.

        Anthropic API 형식에 맞게 시스템 프롬프트는 별도 파라미터로 전달합니다.
        """
        create_kwargs = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
            "timeout": timeout,
        }
        if self._system_prompt:
            create_kwargs["system"] = self._system_prompt

        try:
            response = await self._client.messages.create(**create_kwargs)
        except APITimeoutError as e:
            raise CallTimeoutError(f"Anthropic 호출 타임아웃: {e}") from e
        except APIConnectionError as e:
            raise TransientCallError(f"Anthropic 연결 실패: {e}") from e
        except (RateLimitError, InternalServerError) as e:
            raise TransientCallError(f"Anthropic 서버 오류: {e}") from e
        except APIStatusError as e:
            raise PermanentCallError(f"Anthropic 요청 실패: {e}") from e

        # 텍스트 블록에서 응답 추출
        texts = [
            block.text
            for block in response.content
            if getattr(block, "type", None) == "text"
        ]
        return "".join(texts)


class AnthropicReviewerClient(ReviewerClient):
    """Anthropic API를 사용하는 리뷰어 클라이언트.

    환경변수 ANTHROPIC_API_KEY에서 API 키를 로드합니다.
    """

    def __init__(
        self,
        api_key: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.3,
    ) -> None:
        """Anthropic 클라이언트 초기화.

        Args:
            api_key: API 키. None이면 환경변수에서 로드.
            max_tokens: 최대 토큰 수. 기본값 4096.
            temperature: 생성 온도. 기본값 0.3.

        Raises:
            ValueError: API 키가 설정되지 않은 경우.
        """
        self._api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not self._api_key:
            raise ValueError(
                "Anthropic API 키가 필요합니다. "
                "환경변수 ANTHROPIC_API_KEY를 설정하거나 api_key 파라미터를 전달하세요."
            )

        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client = AsyncAnthropic(api_key=self._api_key, max_retries=0)

    async def create_session(self, model: str, system_prompt: str) -> ReviewSession:
        return AnthropicSession(
            self._client,
            model,
            system_prompt,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )

    async def close(self) -> None:
        await self._client.close()
