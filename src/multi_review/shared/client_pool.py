"""모델별 리뷰어 클라이언트 풀."""

import asyncio
import logging
from collections.abc import Callable, Iterable

from multi_review.shared.errors import ExecutorConfigurationError
from multi_review.shared.llm import ReviewerClient

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], ReviewerClient]


class ReviewerClientPool:
    """모델당 하나의 ReviewerClient를 소유하는 풀.

    리뷰 실행 전에 start()로 생성하고 끝나면 stop()으로 정리합니다.
    같은 모델을 쓰는 모든 작업이 하나의 클라이언트를 공유합니다.

    Examples:
        >>> async with ReviewerClientPool(["gpt-4o"], factory) as pool:
        ...     client = pool.get_client("gpt-4o")
    """

    def __init__(self, models: Iterable[str], client_factory: ClientFactory) -> None:
        """ReviewerClientPool 초기화.

        Args:
            models: 클라이언트를 만들 모델 목록 (중복은 한 번만 생성)
            client_factory: 모델명을 받아 ReviewerClient를 만드는 함수
        """
        self._models = list(dict.fromkeys(models))
        self._factory = client_factory
        self._clients: dict[str, ReviewerClient] = {}
        self._started = False

    async def start(self) -> None:
        """모든 모델의 클라이언트 생성."""
        if self._started:
            return

        try:
            for model in self._models:
                self._clients[model] = self._factory(model)
        except BaseException:
            # 이미 만든 클라이언트는 닫고 전파
            await self.stop()
            raise

        self._started = True
        logger.debug(f"클라이언트 풀 시작: {', '.join(self._models)}")

    def get_client(self, model: str) -> ReviewerClient:
        """모델에 해당하는 클라이언트 반환.

        Raises:
            ExecutorConfigurationError: 풀이 시작되지 않았거나 등록되지 않은 모델
        """
        if not self._started:
            raise ExecutorConfigurationError(
                "클라이언트 풀이 시작되지 않았습니다. start()를 먼저 호출하세요."
            )

        client = self._clients.get(model)
        if client is None:
            raise ExecutorConfigurationError(f"등록되지 않은 모델입니다: {model}")
        return client

    async def stop(self) -> None:
        """모든 클라이언트 종료.

        하나의 종료 실패가 다른 클라이언트 정리를 막지 않도록 모두 기다립니다.
        """
        clients = list(self._clients.items())
        results = await asyncio.gather(
            *(client.close() for _, client in clients), return_exceptions=True
        )
        for (model, _), result in zip(clients, results):
            if isinstance(result, Exception):
                logger.warning(f"클라이언트 종료 실패 ({model}): {result}")

        self._clients.clear()
        self._started = False

    @property
    def size(self) -> int:
        """활성 클라이언트 수."""
        return len(self._clients)

    async def __aenter__(self) -> "ReviewerClientPool":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
