"""ReviewerClientPool 테스트."""

import pytest
from conftest import FakeReviewerClient

from multi_review.shared.client_pool import ReviewerClientPool
from multi_review.shared.errors import ExecutorConfigurationError


class FailingCloseClient(FakeReviewerClient):
    async def close(self) -> None:
        raise RuntimeError("close failed")


class TestReviewerClientPool:
    """클라이언트 풀 수명 주기 테스트."""

    @pytest.mark.asyncio
    async def test_one_client_per_model(self):
        created = []

        def factory(model):
            created.append(model)
            return FakeReviewerClient()

        async with ReviewerClientPool(["a", "b", "a"], factory) as pool:
            assert pool.size == 2
            assert pool.get_client("a") is pool.get_client("a")
            assert pool.get_client("a") is not pool.get_client("b")

        assert created == ["a", "b"]

    @pytest.mark.asyncio
    async def test_get_before_start(self):
        pool = ReviewerClientPool(["a"], lambda m: FakeReviewerClient())

        with pytest.raises(ExecutorConfigurationError):
            pool.get_client("a")

    @pytest.mark.asyncio
    async def test_unknown_model(self):
        async with ReviewerClientPool(["a"], lambda m: FakeReviewerClient()) as pool:
            with pytest.raises(ExecutorConfigurationError, match="등록되지 않은 모델"):
                pool.get_client("z")

    @pytest.mark.asyncio
    async def test_stop_closes_all_even_if_one_fails(self):
        good = FakeReviewerClient()
        clients = {"bad": FailingCloseClient(), "good": good}
        pool = ReviewerClientPool(["bad", "good"], clients.__getitem__)

        await pool.start()
        await pool.stop()

        assert good.closed
        assert pool.size == 0
        with pytest.raises(ExecutorConfigurationError):
            pool.get_client("good")

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        created = []

        def factory(model):
            created.append(model)
            return FakeReviewerClient()

        pool = ReviewerClientPool(["a"], factory)
        await pool.start()
        await pool.start()

        assert created == ["a"]
        await pool.stop()

    @pytest.mark.asyncio
    async def test_factory_failure_closes_built_clients(self):
        """두 번째 모델 생성 실패 시 먼저 만든 클라이언트를 닫음."""
        first = FakeReviewerClient()

        def factory(model):
            if model == "b":
                raise ValueError("ANTHROPIC_API_KEY 없음")
            return first

        pool = ReviewerClientPool(["a", "b"], factory)

        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
            async with pool:
                pass

        assert first.closed
        assert pool.size == 0
        with pytest.raises(ExecutorConfigurationError):
            pool.get_client("a")
