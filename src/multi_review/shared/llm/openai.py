"""OpenAI 리뷰어 클라이언트 어댑터 구현."""

import os

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    RateLimitError,
)

from multi_review.shared.errors import (
    CallTimeoutError,
    PermanentCallError,
    TransientCallError,
)

from .base import ReviewerClient, ReviewSession


class OpenAISession(ReviewSession):
    """OpenAI chat completions 기반 세션."""

    def __init__(
        self,
        client: AsyncOpenAI,
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
        """chat completions API 호출.

        SDK 예외는 재시도 가능 여부에 따라 CallError 계열로 변환합니다.
        """
        messages = [
            {"role": "system", "content": self._system_prompt},
            {"role": "user", "content": prompt},
        ]

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=messages,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                timeout=timeout,
            )
        except APITimeoutError as e:
            raise CallTimeoutError(f"OpenAI 호출 타임아웃: {e}") from e
        except APIConnectionError as e:
            raise TransientCallError(f"OpenAI 연결 실패: {e}") from e
        except (RateLimitError, InternalServerError) as e:
            raise TransientCallError(f"OpenAI 서버 오류: {e}") from e
        except APIStatusError as e:
            raise PermanentCallError(f"OpenAI 요청 실패: {e}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


class OpenAIReviewerClient(ReviewerClient):
    """OpenAI API를 사용하는 리뷰어 클라이언트.

    환경변수 OPENAI_API_KEY에서 API 키를 로드합니다.
    """

    def __init__(
        self,
        api_key: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.3,
    ) -> None:
        """OpenAI 클라이언트 초기화.

        Args:
            api_key: API 키. None이면 환경변수에서 로드.
            max_tokens: 최대 토큰 수. 기본값 4096.
            temperature: 생성 온도. 기본값 0.3.

        Raises:
            ValueError: API 키가 설정되지 않은 경우.
        """
        self._api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self._api_key:
            raise ValueError(
                "OpenAI API 키가 필요합니다. "
                "환경변수 OPENAI_API_KEY를 설정하거나 api_key 파라미터를 전달하세요."
            )

        self._max_tokens = max_tokens
        self._temperature = temperature
        # 재시도는 호출 컨트롤러가 담당
        self._client = AsyncOpenAI(api_key=self._api_key, max_retries=0)

    async def create_session(self, model: str, system_prompt: str) -> ReviewSession:
        return OpenAISession(
            self._client,
            model,
            system_prompt,
            max_tokens=self._max_tokens,
            temperature=self._temperature,
        )

    async def close(self) -> None:
        await self._client.close()
