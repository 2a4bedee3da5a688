"""리뷰어 호출, 재시도, 배치 폴백 제어."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar, Union

from multi_review.review.prompt import PromptBuilder
from multi_review.review.response_parser import (
    ParsedReview,
    parse_batch_response,
    parse_review_response,
)
from multi_review.shared.client_pool import ReviewerClientPool
from multi_review.shared.errors import (
    CallError,
    CallTimeoutError,
    ExecutorConfigurationError,
    PermanentCallError,
    SchemaValidationError,
    TransientCallError,
)
from multi_review.shared.llm import ReviewerClient
from multi_review.shared.models import (
    Batch,
    FileReviewRecord,
    FileUnit,
    ReviewStatus,
    ReviewTask,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


# ============================================================
# 재시도 정책
# ============================================================


@dataclass(frozen=True)
class RetryPolicy:
    """지수 백오프 재시도 정책.

    시도 번호는 0부터 시작하고, k번째 시도(k>0) 전에
    base_delay × 2^(k-1)초 대기합니다. 전체 시도 수는 최대 max_retries + 1.
    """

    max_retries: int = 2
    base_delay: float = 2.0

    @property
    def max_attempts(self) -> int:
        return max(0, self.max_retries) + 1

    def delay_for(self, attempt: int) -> float:
        """attempt번째 시도 전 대기 시간 (초)."""
        if attempt <= 0:
            return 0.0
        return self.base_delay * (2 ** (attempt - 1))


class RetryState(Enum):
    """재시도 루프 상태."""

    ATTEMPTING = "attempting"
    WAITING = "waiting"
    DONE = "done"


@dataclass(frozen=True)
class CallAttempt(Generic[T]):
    """재시도를 포함한 호출 결과."""

    value: T | None
    error: CallError | None
    attempts: int

    @property
    def succeeded(self) -> bool:
        return self.error is None


def classify_error(error: Exception) -> CallError:
    """임의의 예외를 재시도 가능 여부가 정해진 CallError로 변환.

    알 수 없는 예외는 재시도해도 반복될 것으로 보고 영구 실패로 분류합니다.
    """
    if isinstance(error, CallError):
        return error
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return CallTimeoutError(str(error) or "호출 타임아웃")
    if isinstance(error, ConnectionError):
        return TransientCallError(f"연결 오류: {error}")
    return PermanentCallError(f"{type(error).__name__}: {error}")


async def call_with_retry(
    call: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Sleep = asyncio.sleep,
    label: str = "",
) -> CallAttempt[T]:
    """재시도 정책에 따라 호출.

    첫 성공, 첫 영구 실패, 재시도 소진 중 먼저 오는 시점에 반환합니다.
    ExecutorConfigurationError는 재시도하지 않고 그대로 전파합니다.

    Args:
        call: 시도 한 번을 수행하는 코루틴 함수
        policy: 재시도 정책
        sleep: 백오프 대기 함수 (테스트에서 교체)
        label: 로그용 호출 설명

    Returns:
        CallAttempt (값 또는 마지막 오류, 소비한 시도 수)
    """
    state = RetryState.ATTEMPTING
    attempt = 0
    last_error: CallError | None = None

    while state is not RetryState.DONE:
        if state is RetryState.WAITING:
            await sleep(policy.delay_for(attempt))
            state = RetryState.ATTEMPTING
            continue

        try:
            value = await call()
            return CallAttempt(value=value, error=None, attempts=attempt + 1)
        except ExecutorConfigurationError:
            raise
        except Exception as e:
            last_error = classify_error(e)

        attempt += 1
        if last_error.retryable and attempt < policy.max_attempts:
            logger.warning(
                f"{label} 호출 실패, 재시도 {attempt}/{policy.max_retries} "
                f"({policy.delay_for(attempt):.1f}초 후): {last_error}"
            )
            state = RetryState.WAITING
        else:
            state = RetryState.DONE

    return CallAttempt(value=None, error=last_error, attempts=attempt)


async def send_prompt(
    client: ReviewerClient,
    model: str,
    system_prompt: str,
    message: str,
    timeout: float,
) -> str:
    """새 세션으로 호출 한 번 수행. 세션은 성공/실패와 무관하게 정리.

    Raises:
        CallTimeoutError: timeout초 안에 응답이 없는 경우
    """
    session = await client.create_session(model, system_prompt)
    try:
        return await asyncio.wait_for(
            session.send_and_wait(message, timeout), timeout=timeout
        )
    except asyncio.TimeoutError as e:
        raise CallTimeoutError(f"{timeout}초 안에 응답이 없습니다.") from e
    finally:
        try:
            await session.destroy()
        except Exception as e:
            logger.debug(f"세션 정리 실패 ({model}): {e}")


# ============================================================
# 배치 결과 (태그된 변형)
# ============================================================


@dataclass(frozen=True)
class BatchSuccess:
    """배치의 모든 파일이 응답에 포함됨."""

    reviews: dict[str, ParsedReview]
    attempts: int
    duration_seconds: float


@dataclass(frozen=True)
class BatchPartial:
    """구조적으로는 성공했지만 일부 파일이 빠짐."""

    reviews: dict[str, ParsedReview]
    missing: list[FileUnit]
    attempts: int
    duration_seconds: float


@dataclass(frozen=True)
class BatchFailure:
    """배치 호출 전체 실패."""

    error: CallError
    attempts: int
    duration_seconds: float


BatchOutcome = Union[BatchSuccess, BatchPartial, BatchFailure]


class TaskStatus(Enum):
    """작업 종료 상태."""

    SUCCESS = "success"
    PARTIAL = "partial"  # 배치 일부 + 누락 파일 개별 리뷰
    FALLBACK = "fallback"  # 배치 실패, 전체 파일 개별 리뷰
    FAILED = "failed"  # 단일 파일 작업의 재시도 소진


@dataclass
class TaskResult:
    """작업 하나의 결과."""

    task: ReviewTask
    status: TaskStatus
    records: list[FileReviewRecord] = field(default_factory=list)
    attempts: int = 0


# ============================================================
# 호출 컨트롤러
# ============================================================


class ReviewCallController:
    """작업 하나를 리뷰어 호출로 실행.

    배치 작업은 한 번의 호출로 여러 파일을 리뷰하고, 응답에서 빠진 파일이나
    실패한 배치는 단일 파일 경로로 다시 리뷰합니다. 폴백 파일은 작업 안에서
    순서대로 처리되므로 동시 호출 수는 실행기 슬롯 수를 넘지 않습니다.
    """

    def __init__(
        self,
        pool: ReviewerClientPool,
        prompt_builder: PromptBuilder,
        timeout: float,
        policy: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """ReviewCallController 초기화.

        Args:
            pool: 시작된 클라이언트 풀
            prompt_builder: 프롬프트 생성기
            timeout: 호출당 타임아웃 (초)
            policy: 재시도 정책
            sleep: 백오프 대기 함수
        """
        self.pool = pool
        self.prompt_builder = prompt_builder
        self.timeout = timeout
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def execute(self, task: ReviewTask, batch: Batch) -> TaskResult:
        """작업 실행.

        Raises:
            ExecutorConfigurationError: 작업의 모델이 풀에 없는 경우
        """
        if len(batch.files) == 1:
            record = await self.review_file(task, batch.files[0])
            return TaskResult(
                task=task,
                status=TaskStatus.SUCCESS if record.is_success else TaskStatus.FAILED,
                records=[record],
                attempts=record.retries + 1,
            )

        outcome = await self._review_batch(task, batch)

        if isinstance(outcome, BatchSuccess):
            records = [
                self._success_record(task, path, review, outcome)
                for path, review in outcome.reviews.items()
            ]
            status = TaskStatus.SUCCESS
        elif isinstance(outcome, BatchPartial):
            logger.warning(
                f"배치 {task.batch_index} ({task.model}/{task.perspective}) 부분 성공: "
                f"{len(outcome.missing)}개 파일을 개별 리뷰합니다."
            )
            records = [
                self._success_record(task, path, review, outcome)
                for path, review in outcome.reviews.items()
            ]
            for unit in outcome.missing:
                records.append(await self.review_file(task, unit))
            status = TaskStatus.PARTIAL
        elif isinstance(outcome, BatchFailure):
            logger.warning(
                f"배치 {task.batch_index} ({task.model}/{task.perspective}) 실패, "
                f"{len(batch.files)}개 파일을 개별 리뷰합니다: {outcome.error}"
            )
            records = [await self.review_file(task, unit) for unit in batch.files]
            status = TaskStatus.FALLBACK
        else:
            raise TypeError(f"알 수 없는 배치 결과: {outcome!r}")

        order = {path: i for i, path in enumerate(batch.paths)}
        records.sort(key=lambda r: order[r.file_path])
        return TaskResult(
            task=task, status=status, records=records, attempts=outcome.attempts
        )

    async def review_file(self, task: ReviewTask, unit: FileUnit) -> FileReviewRecord:
        """파일 하나를 재시도 정책에 따라 리뷰.

        재시도가 소진되어도 예외 대신 error/timeout 레코드를 반환합니다.
        """
        client = self.pool.get_client(task.model)
        system_prompt = self.prompt_builder.system_prompt(task.perspective)
        message = self.prompt_builder.file_message(unit)

        async def attempt() -> ParsedReview:
            text = await self._send(client, task.model, system_prompt, message)
            return parse_review_response(text)

        start = time.monotonic()
        result = await call_with_retry(
            attempt,
            self.policy,
            self._sleep,
            label=f"{unit.path} ({task.model}/{task.perspective})",
        )
        duration = time.monotonic() - start

        if result.succeeded:
            return FileReviewRecord(
                model=task.model,
                perspective=task.perspective,
                file_path=unit.path,
                status=ReviewStatus.SUCCESS,
                issues=result.value.issues,
                summary=result.value.summary,
                duration_seconds=duration,
                retries=result.attempts - 1,
            )

        logger.error(
            f"{unit.path} 리뷰 실패 ({task.model}/{task.perspective}, "
            f"{result.attempts}회 시도): {result.error}"
        )
        return FileReviewRecord(
            model=task.model,
            perspective=task.perspective,
            file_path=unit.path,
            status=(
                ReviewStatus.TIMEOUT
                if isinstance(result.error, CallTimeoutError)
                else ReviewStatus.ERROR
            ),
            duration_seconds=duration,
            retries=result.attempts - 1,
            error=str(result.error),
        )

    async def _review_batch(self, task: ReviewTask, batch: Batch) -> BatchOutcome:
        client = self.pool.get_client(task.model)
        system_prompt = self.prompt_builder.system_prompt(task.perspective, batch=True)
        message = self.prompt_builder.batch_message(batch.files)
        paths = batch.paths

        async def attempt() -> dict[str, ParsedReview]:
            text = await self._send(client, task.model, system_prompt, message)
            reviews = parse_batch_response(text, paths)
            if not reviews:
                raise SchemaValidationError("배치 응답에 요청한 파일이 하나도 없습니다.")
            return reviews

        start = time.monotonic()
        result = await call_with_retry(
            attempt,
            self.policy,
            self._sleep,
            label=f"배치 {task.batch_index} ({task.model}/{task.perspective})",
        )
        duration = time.monotonic() - start

        if not result.succeeded:
            return BatchFailure(
                error=result.error, attempts=result.attempts, duration_seconds=duration
            )

        missing = [unit for unit in batch.files if unit.path not in result.value]
        if missing:
            return BatchPartial(
                reviews=result.value,
                missing=missing,
                attempts=result.attempts,
                duration_seconds=duration,
            )
        return BatchSuccess(
            reviews=result.value, attempts=result.attempts, duration_seconds=duration
        )

    async def _send(
        self, client: ReviewerClient, model: str, system_prompt: str, message: str
    ) -> str:
        return await send_prompt(client, model, system_prompt, message, self.timeout)

    @staticmethod
    def _success_record(
        task: ReviewTask,
        path: str,
        review: ParsedReview,
        outcome: BatchSuccess | BatchPartial,
    ) -> FileReviewRecord:
        return FileReviewRecord(
            model=task.model,
            perspective=task.perspective,
            file_path=path,
            status=ReviewStatus.SUCCESS,
            issues=review.issues,
            summary=review.summary,
            duration_seconds=outcome.duration_seconds,
            retries=outcome.attempts - 1,
        )
