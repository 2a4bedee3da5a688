"""동시 실행 수가 제한된 작업 실행기."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar

from multi_review.shared.models import ReviewTask

logger = logging.getLogger(__name__)

T = TypeVar("T")

TaskStartCallback = Callable[[ReviewTask], Any]
TaskCompleteCallback = Callable[[ReviewTask, Any], Any]


class TaskExecutor:
    """세마포어로 동시 실행 수를 제한하는 작업 실행기.

    슬롯이 비어야 다음 작업을 생성하므로 작업 수와 무관하게
    진행 중인 handler는 최대 concurrency개입니다. 모든 작업은 정확히
    한 번 실행되며, 실패는 handler가 자기 결과로 보고합니다.
    handler가 예외를 던지면(설정 오류 등) 남은 작업을 취소하고 예외를
    그대로 전파합니다.
    """

    def __init__(
        self,
        concurrency: int,
        on_task_start: TaskStartCallback | None = None,
        on_task_complete: TaskCompleteCallback | None = None,
    ) -> None:
        """TaskExecutor 초기화.

        Args:
            concurrency: 동시에 실행할 최대 작업 수 (1 이상)
            on_task_start: 작업 시작 시 호출되는 콜백
            on_task_complete: 작업 완료 시 (작업, 결과)로 호출되는 콜백

        Raises:
            ValueError: concurrency가 1 미만인 경우
        """
        if concurrency < 1:
            raise ValueError(f"concurrency는 1 이상이어야 합니다: {concurrency}")

        self.concurrency = concurrency
        self._on_task_start = on_task_start
        self._on_task_complete = on_task_complete

    async def run(
        self,
        tasks: Iterable[ReviewTask],
        handler: Callable[[ReviewTask], Awaitable[T]],
    ) -> list[T]:
        """모든 작업을 실행하고 완료 순서대로 결과 반환.

        Args:
            tasks: 실행할 작업 목록
            handler: 작업 하나를 처리하는 코루틴 함수

        Returns:
            handler 결과 목록 (완료 순서)
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        results: list[T] = []
        in_flight: set[asyncio.Task] = set()

        async def run_one(task: ReviewTask) -> None:
            try:
                notify(self._on_task_start, task)
                result = await handler(task)
                results.append(result)
                notify(self._on_task_complete, task, result)
            finally:
                semaphore.release()

        try:
            for task in tasks:
                # 슬롯이 빌 때까지 제출을 멈춤 (backpressure)
                await semaphore.acquire()
                _raise_if_failed(in_flight)
                in_flight.add(asyncio.create_task(run_one(task)))

            if in_flight:
                await asyncio.gather(*in_flight)
        except BaseException:
            for pending in in_flight:
                pending.cancel()
            await asyncio.gather(*in_flight, return_exceptions=True)
            raise

        return results


def _raise_if_failed(in_flight: set[asyncio.Task]) -> None:
    """완료된 작업을 정리하고, 예외로 끝난 작업이 있으면 다시 던짐."""
    for done in [t for t in in_flight if t.done()]:
        in_flight.discard(done)
        if not done.cancelled() and done.exception() is not None:
            raise done.exception()


def notify(callback: Callable[..., Any] | None, *args: Any) -> None:
    """진행 콜백 호출. 콜백 실패는 스케줄링에 영향을 주지 않음."""
    if callback is None:
        return
    try:
        callback(*args)
    except Exception as e:
        logger.warning(f"진행 콜백 실패: {e}")
