"""Review Runner - 멀티 모델 × 멀티 관점 리뷰 실행기."""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from multi_review.shared.client_pool import ClientFactory, ReviewerClientPool
from multi_review.shared.config import AppConfig, load_config
from multi_review.shared.git import GitClient
from multi_review.shared.llm import get_client, resolve_provider
from multi_review.shared.models import (
    AggregatedReport,
    Batch,
    FileMergedReview,
    FileReviewRecord,
    FileUnit,
    ReviewTask,
    TriageDecision,
)

from .aggregator import aggregate
from .batcher import create_batches
from .context import ContextLoader
from .controller import ReviewCallController, RetryPolicy, Sleep, TaskResult
from .diff_parser import DiffParser
from .executor import TaskExecutor, notify
from .merger import MergeStrategy, get_merge_strategy
from .perspectives import validate_perspectives
from .prompt import PromptBuilder
from .tasks import generate_tasks, tasks_per_file
from .triage import triage_files

logger = logging.getLogger(__name__)


@dataclass
class ReviewCallbacks:
    """진행 상황 알림 콜백. 모두 선택 사항이며 실패해도 실행에 영향이 없음."""

    on_task_start: Callable[[ReviewTask], Any] | None = None
    on_task_complete: Callable[[ReviewTask, TaskResult], Any] | None = None
    on_file_complete: Callable[[FileMergedReview], Any] | None = None


def default_client_factory(config: AppConfig) -> ClientFactory:
    """설정에 맞게 모델별 리뷰어 클라이언트를 만드는 팩토리."""

    def factory(model: str):
        provider = resolve_provider(model, config.llm.provider_map)
        return get_client(
            provider,
            max_tokens=config.llm.max_tokens,
            temperature=config.llm.temperature,
        )

    return factory


class ReviewRunner:
    """멀티 모델 코드 리뷰 실행기.

    변경된 파일을 배치로 묶고, 배치 × 모델 × 관점의 모든 작업을 제한된
    동시성으로 실행한 뒤 파일별로 결과를 병합합니다. 모든 입력 파일은
    리뷰가 전부 실패하더라도 결과를 하나씩 받습니다.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        client_factory: ClientFactory | None = None,
        callbacks: ReviewCallbacks | None = None,
        merge_strategy: MergeStrategy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """ReviewRunner 초기화.

        Args:
            config: 애플리케이션 설정. None이면 load_config() 결과 사용.
            client_factory: 모델명 -> ReviewerClient. None이면 제공자 어댑터 사용.
            callbacks: 진행 상황 콜백
            merge_strategy: 병합 전략. None이면 설정의 merge_strategy를 따름.
            sleep: 재시도 백오프 대기 함수

        Raises:
            ValueError: 모델이 없거나 알 수 없는 관점이 포함된 경우
        """
        self.config = config or load_config()
        review = self.config.review
        if not review.models:
            raise ValueError("리뷰 모델이 하나 이상 필요합니다.")
        self.models = list(dict.fromkeys(review.models))
        self.perspectives = validate_perspectives(review.perspectives)

        self.client_factory = client_factory or default_client_factory(self.config)
        self.callbacks = callbacks or ReviewCallbacks()
        self._merge_strategy = merge_strategy
        self._sleep = sleep
        self._diff_parser = DiffParser()

    @property
    def total_reviewers(self) -> int:
        """파일 하나를 리뷰해야 하는 리뷰어 수 (모델 × 관점)."""
        return len(self.models) * len(self.perspectives)

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.config.review.max_retries,
            base_delay=self.config.review.retry_delay_seconds,
        )

    def _pool_models(self) -> list[str]:
        models = list(self.models)
        if self._merge_strategy is None and self.config.review.merge_strategy == "ai":
            models.append(self.config.review.resolved_merge_model)
        return models

    async def review(
        self,
        path: str | Path = ".",
        staged: bool = False,
        commit_range: str | None = None,
        pr: int | None = None,
    ) -> AggregatedReport:
        """Git 변경사항을 리뷰합니다.

        Args:
            path: Git 저장소 경로.
            staged: True면 staged 변경사항만 리뷰.
            commit_range: 리뷰할 커밋 범위 (예: "HEAD~3..HEAD").
            pr: 리뷰할 pull request 번호. 지정하면 staged와 commit_range는
                무시됩니다.

        Returns:
            AggregatedReport 객체.
        """
        git = GitClient(path)
        if pr is not None:
            diff_text = git.get_pr_diff(pr)
        else:
            diff_text = git.get_diff(staged=staged, commit_range=commit_range)
        return await self.review_diff(diff_text, root=git.root)

    def review_sync(
        self,
        path: str | Path = ".",
        staged: bool = False,
        commit_range: str | None = None,
        pr: int | None = None,
    ) -> AggregatedReport:
        """review()의 동기 버전."""
        return asyncio.run(self.review(path, staged, commit_range, pr))

    def review_diff_sync(
        self, diff_text: str, root: str | Path = "."
    ) -> AggregatedReport:
        """review_diff()의 동기 버전."""
        return asyncio.run(self.review_diff(diff_text, root))

    async def review_diff(
        self, diff_text: str, root: str | Path = "."
    ) -> AggregatedReport:
        """diff 텍스트를 직접 리뷰합니다.

        Args:
            diff_text: Git diff 텍스트.
            root: 컨텍스트를 읽을 작업 트리 경로.

        Returns:
            AggregatedReport 객체.
        """
        units = self._diff_parser.parse(diff_text)
        if not units:
            return aggregate([], [], self.models)

        triaged = triage_files(units)
        to_review = [t.file for t in triaged if t.decision is TriageDecision.REVIEW]
        logger.info(
            f"변경 파일 {len(units)}개 중 {len(to_review)}개 리뷰 "
            f"(건너뜀 {len(units) - len(to_review)}개)"
        )

        loader = ContextLoader(root, max_lines=self.config.review.context_lines)
        to_review = loader.with_context(to_review)

        file_reviews = await self.review_files(to_review, [u.path for u in units])
        return aggregate(triaged, file_reviews, self.models)

    async def review_files(
        self,
        files: list[FileUnit],
        all_changed_files: list[str] | None = None,
    ) -> list[FileMergedReview]:
        """파일 목록을 모든 모델 × 관점으로 리뷰하고 파일별로 병합.

        Args:
            files: 리뷰할 파일 (경로가 유일해야 함)
            all_changed_files: 프롬프트에 교차 참조로 넣을 전체 변경 파일

        Returns:
            입력 순서대로의 FileMergedReview 목록 (파일당 정확히 하나)

        Raises:
            ExecutorConfigurationError: 클라이언트가 없는 모델로 작업한 경우
        """
        if not files:
            return []

        review_config = self.config.review
        batches = create_batches(
            files,
            token_budget=review_config.token_budget,
            max_files_per_batch=review_config.max_files_per_batch,
        )
        tasks = generate_tasks(batches, self.models, self.perspectives)
        logger.info(
            f"파일 {len(files)}개 -> 배치 {len(batches)}개, 작업 {len(tasks)}개 "
            f"(모델 {len(self.models)} × 관점 {len(self.perspectives)})"
        )

        prompt_builder = PromptBuilder(all_changed_files or [f.path for f in files])

        async with ReviewerClientPool(self._pool_models(), self.client_factory) as pool:
            controller = ReviewCallController(
                pool,
                prompt_builder,
                timeout=review_config.timeout_seconds,
                policy=self.retry_policy,
                sleep=self._sleep,
            )
            merge_strategy = self._merge_strategy or get_merge_strategy(
                review_config.merge_strategy,
                pool=pool,
                model=review_config.resolved_merge_model,
                prompt_builder=prompt_builder,
                timeout=review_config.timeout_seconds,
                policy=self.retry_policy,
                sleep=self._sleep,
            )
            tracker = _FileCompletionTracker(
                batches,
                tasks,
                merge=lambda path, records: merge_strategy.merge(
                    path, records, self.total_reviewers
                ),
                order=self._record_order,
                on_file_complete=self.callbacks.on_file_complete,
            )

            async def handle(task: ReviewTask) -> TaskResult:
                batch = batches[task.batch_index]
                result = await controller.execute(task, batch)
                await tracker.settle(batch, result)
                return result

            executor = TaskExecutor(
                review_config.concurrency,
                on_task_start=self.callbacks.on_task_start,
                on_task_complete=self.callbacks.on_task_complete,
            )
            await executor.run(tasks, handle)

        return [tracker.merged[f.path] for f in files]

    def _record_order(self, record: FileReviewRecord) -> tuple[int, int]:
        """설정 순서 (모델, 관점) 기준 정렬 키."""
        return (
            self.models.index(record.model),
            self.perspectives.index(record.perspective),
        )


class _FileCompletionTracker:
    """파일별 남은 작업 수를 세고, 마지막 작업이 끝나는 즉시 병합.

    이벤트 루프 하나에서만 사용하므로 잠금이 필요 없습니다.
    """

    def __init__(
        self,
        batches: list[Batch],
        tasks: list[ReviewTask],
        merge: Callable[[str, list[FileReviewRecord]], Any],
        order: Callable[[FileReviewRecord], Any],
        on_file_complete: Callable[[FileMergedReview], Any] | None = None,
    ) -> None:
        self.remaining = tasks_per_file(batches, tasks)
        self.records: dict[str, list[FileReviewRecord]] = defaultdict(list)
        self.merged: dict[str, FileMergedReview] = {}
        self._merge = merge
        self._order = order
        self._on_file_complete = on_file_complete

    async def settle(self, batch: Batch, result: TaskResult) -> None:
        """작업 하나의 결과를 반영."""
        for record in result.records:
            self.records[record.file_path].append(record)

        for path in batch.paths:
            self.remaining[path] -= 1
            if self.remaining[path] == 0:
                records = _dedupe_records(self.records.pop(path, []))
                records.sort(key=self._order)
                merged = await self._merge(path, records)
                self.merged[path] = merged
                notify(self._on_file_complete, merged)


def _dedupe_records(records: list[FileReviewRecord]) -> list[FileReviewRecord]:
    """(모델, 관점, 파일)마다 레코드 하나만 남김. 성공 레코드를 우선."""
    chosen: dict[tuple[str, str, str], FileReviewRecord] = {}
    for record in records:
        key = (record.model, record.perspective, record.file_path)
        current = chosen.get(key)
        if current is None or (record.is_success and not current.is_success):
            chosen[key] = record
    return list(chosen.values())


# ============================================================
# 편의 함수
# ============================================================


async def run_review(
    path: str | Path = ".",
    staged: bool = False,
    commit_range: str | None = None,
    config: AppConfig | None = None,
    callbacks: ReviewCallbacks | None = None,
    pr: int | None = None,
) -> AggregatedReport:
    """코드 리뷰를 실행하고 결과를 반환합니다.

    Args:
        path: Git 저장소 경로.
        staged: True면 staged 변경사항만 리뷰.
        commit_range: 리뷰할 커밋 범위.
        config: 애플리케이션 설정.
        callbacks: 진행 상황 콜백.
        pr: 리뷰할 pull request 번호.

    Returns:
        AggregatedReport 객체.
    """
    runner = ReviewRunner(config=config, callbacks=callbacks)
    return await runner.review(path, staged, commit_range, pr)


def run_review_sync(
    path: str | Path = ".",
    staged: bool = False,
    commit_range: str | None = None,
    config: AppConfig | None = None,
    callbacks: ReviewCallbacks | None = None,
    pr: int | None = None,
) -> AggregatedReport:
    """run_review()의 동기 버전."""
    return asyncio.run(
        run_review(path, staged, commit_range, config, callbacks, pr=pr)
    )
