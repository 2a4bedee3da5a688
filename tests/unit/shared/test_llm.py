"""리뷰어 클라이언트 어댑터 테스트."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from anthropic import RateLimitError as AnthropicRateLimitError
from openai import APIStatusError, APITimeoutError, RateLimitError

from multi_review.shared.errors import (
    CallTimeoutError,
    PermanentCallError,
    TransientCallError,
)
from multi_review.shared.llm import (
    AnthropicReviewerClient,
    OpenAIReviewerClient,
    ReviewerClient,
    ReviewSession,
    get_client,
    resolve_provider,
)

REQUEST = httpx.Request("POST", "https://api.example.com/v1/messages")


def _response(status: int) -> httpx.Response:
    return httpx.Response(status, request=REQUEST)


class TestBaseClasses:
    """추상 베이스 클래스 테스트."""

    def test_cannot_instantiate(self) -> None:
        with pytest.raises(TypeError):
            ReviewerClient()  # type: ignore
        with pytest.raises(TypeError):
            ReviewSession()  # type: ignore


class TestResolveProvider:
    """모델명 -> 제공자 결정 테스트."""

    @pytest.mark.parametrize(
        ("model", "provider"),
        [
            ("gpt-4o", "openai"),
            ("o3-mini", "openai"),
            ("claude-3-5-sonnet-latest", "anthropic"),
            ("Claude-Opus", "anthropic"),
            ("some-local-model", "openai"),
        ],
    )
    def test_prefix_rules(self, model, provider) -> None:
        assert resolve_provider(model) == provider

    def test_provider_map_wins(self) -> None:
        assert resolve_provider("gpt-4o", {"gpt-4o": "Anthropic"}) == "anthropic"


class TestGetClient:
    """get_client 팩토리 테스트."""

    def test_openai(self) -> None:
        with patch("multi_review.shared.llm.openai.AsyncOpenAI"):
            assert isinstance(get_client("openai", api_key="k"), OpenAIReviewerClient)

    def test_anthropic(self) -> None:
        with patch("multi_review.shared.llm.anthropic.AsyncAnthropic"):
            client = get_client("ANTHROPIC", api_key="k", max_tokens=100)
            assert isinstance(client, AnthropicReviewerClient)

    def test_unsupported(self) -> None:
        with pytest.raises(ValueError) as exc_info:
            get_client("unknown")
        assert "지원하지 않는 LLM 제공자" in str(exc_info.value)


class TestOpenAIReviewerClient:
    """OpenAIReviewerClient 테스트."""

    def test_init_without_api_key_raises_error(self) -> None:
        """API 키 없이 초기화하면 에러."""
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ValueError) as exc_info:
                OpenAIReviewerClient()

            assert "OPENAI_API_KEY" in str(exc_info.value)

    def test_init_with_env_api_key(self, mocker) -> None:
        """환경변수에서 API 키 로드, SDK 자체 재시도는 끔."""
        mocker.patch.dict("os.environ", {"OPENAI_API_KEY": "test-key"})
        sdk = mocker.patch("multi_review.shared.llm.openai.AsyncOpenAI")

        OpenAIReviewerClient()

        sdk.assert_called_once_with(api_key="test-key", max_retries=0)

    @pytest.mark.asyncio
    async def test_send_and_wait(self, mocker) -> None:
        sdk = mocker.patch("multi_review.shared.llm.openai.AsyncOpenAI")
        create = AsyncMock(
            return_value=MagicMock(choices=[MagicMock(message=MagicMock(content="hi"))])
        )
        sdk.return_value.chat.completions.create = create
        client = OpenAIReviewerClient(api_key="k", max_tokens=123, temperature=0.1)

        session = await client.create_session("gpt-4o", "be strict")
        text = await session.send_and_wait("review this", timeout=30)

        assert text == "hi"
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["messages"] == [
            {"role": "system", "content": "be strict"},
            {"role": "user", "content": "review this"},
        ]
        assert kwargs["max_tokens"] == 123
        assert kwargs["temperature"] == 0.1
        assert kwargs["timeout"] == 30

    @pytest.mark.asyncio
    async def test_empty_choices(self, mocker) -> None:
        sdk = mocker.patch("multi_review.shared.llm.openai.AsyncOpenAI")
        sdk.return_value.chat.completions.create = AsyncMock(
            return_value=MagicMock(choices=[])
        )
        session = await OpenAIReviewerClient(api_key="k").create_session("gpt-4o", "")

        assert await session.send_and_wait("x", timeout=1) == ""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (APITimeoutError(request=REQUEST), CallTimeoutError),
            (
                RateLimitError("slow down", response=_response(429), body=None),
                TransientCallError,
            ),
            (
                APIStatusError("bad request", response=_response(400), body=None),
                PermanentCallError,
            ),
        ],
    )
    async def test_sdk_errors_classified(self, mocker, error, expected) -> None:
        sdk = mocker.patch("multi_review.shared.llm.openai.AsyncOpenAI")
        sdk.return_value.chat.completions.create = AsyncMock(side_effect=error)
        session = await OpenAIReviewerClient(api_key="k").create_session("gpt-4o", "")

        with pytest.raises(expected):
            await session.send_and_wait("x", timeout=1)

    @pytest.mark.asyncio
    async def test_close(self, mocker) -> None:
        sdk = mocker.patch("multi_review.shared.llm.openai.AsyncOpenAI")
        sdk.return_value.close = AsyncMock()

        await OpenAIReviewerClient(api_key="k").close()

        sdk.return_value.close.assert_awaited_once()


class TestAnthropicReviewerClient:
    """AnthropicReviewerClient 테스트."""

    def test_init_without_api_key_raises_error(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ValueError) as exc_info:
                AnthropicReviewerClient()

            assert "ANTHROPIC_API_KEY" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_send_and_wait_joins_text_blocks(self, mocker) -> None:
        sdk = mocker.patch("multi_review.shared.llm.anthropic.AsyncAnthropic")
        blocks = [
            MagicMock(type="text", text='{"issues": '),
            MagicMock(type="tool_use"),
            MagicMock(type="text", text='[], "summary": "ok"}'),
        ]
        create = AsyncMock(return_value=MagicMock(content=blocks))
        sdk.return_value.messages.create = create
        client = AnthropicReviewerClient(api_key="k")

        session = await client.create_session("claude-3-5-sonnet-latest", "system")
        text = await session.send_and_wait("review", timeout=10)

        assert text == '{"issues": [], "summary": "ok"}'
        kwargs = create.call_args.kwargs
        assert kwargs["system"] == "system"
        assert kwargs["messages"] == [{"role": "user", "content": "review"}]

    @pytest.mark.asyncio
    async def test_no_system_prompt(self, mocker) -> None:
        sdk = mocker.patch("multi_review.shared.llm.anthropic.AsyncAnthropic")
        create = AsyncMock(return_value=MagicMock(content=[]))
        sdk.return_value.messages.create = create

        session = await AnthropicReviewerClient(api_key="k").create_session("claude", "")
        assert await session.send_and_wait("x", timeout=1) == ""
        assert "system" not in create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_rate_limit_is_transient(self, mocker) -> None:
        sdk = mocker.patch("multi_review.shared.llm.anthropic.AsyncAnthropic")
        sdk.return_value.messages.create = AsyncMock(
            side_effect=AnthropicRateLimitError(
                "rate limited", response=_response(429), body=None
            )
        )
        session = await AnthropicReviewerClient(api_key="k").create_session("claude", "")

        with pytest.raises(TransientCallError) as exc_info:
            await session.send_and_wait("x", timeout=1)
        assert exc_info.value.retryable
