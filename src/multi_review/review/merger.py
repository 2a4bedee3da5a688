"""파일별 리뷰 병합 (합의 수준 추적)."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from multi_review.review.controller import (
    RetryPolicy,
    Sleep,
    call_with_retry,
    send_prompt,
)
from multi_review.review.prompt import PromptBuilder
from multi_review.review.response_parser import parse_merge_response
from multi_review.shared.client_pool import ReviewerClientPool
from multi_review.shared.models import (
    Consensus,
    FileMergedReview,
    FileReviewRecord,
    MergedIssue,
    ReviewIssue,
    Severity,
)

logger = logging.getLogger(__name__)

NO_SUCCESSFUL_REVIEWS_MESSAGE = "No models returned successful reviews for this file."

SUMMARY_SEPARATOR = " | "


def normalize_title(title: str) -> str:
    """중복 판단용 제목 키 (앞뒤 공백 제거, 대소문자 무시)."""
    return title.strip().casefold()


def determine_consensus(model_count: int, total_expected_reviewers: int) -> Consensus:
    """이슈를 보고한 모델 수로 합의 수준 결정.

    - 기대 리뷰어 수와 같으면 unanimous
    - 절반을 넘으면 majority
    - 그 외 single
    """
    if model_count >= total_expected_reviewers:
        return Consensus.UNANIMOUS
    if model_count > total_expected_reviewers / 2:
        return Consensus.MAJORITY
    return Consensus.SINGLE


@dataclass
class _IssueGroup:
    """같은 제목으로 묶인 이슈들의 병합 상태."""

    first: ReviewIssue
    severity: Severity
    description: str
    suggestion: str | None
    file: str | None
    line: int | None
    models: list[str] = field(default_factory=list)

    @classmethod
    def start(cls, issue: ReviewIssue, model: str) -> "_IssueGroup":
        return cls(
            first=issue,
            severity=issue.severity,
            description=issue.description,
            suggestion=issue.suggestion or None,
            file=issue.file,
            line=issue.line,
            models=[model],
        )

    def add(self, issue: ReviewIssue, model: str) -> None:
        if model not in self.models:
            self.models.append(model)
        if issue.severity.rank > self.severity.rank:
            self.severity = issue.severity
        # 길이가 같으면 먼저 나온 설명 유지
        if len(issue.description) > len(self.description):
            self.description = issue.description
        if not self.suggestion and issue.suggestion:
            self.suggestion = issue.suggestion
        if self.file is None:
            self.file = issue.file
        if self.line is None:
            self.line = issue.line


def merge_file_reviews(
    file_path: str,
    records: list[FileReviewRecord],
    total_expected_reviewers: int,
) -> FileMergedReview:
    """파일 하나에 대한 모든 리뷰 레코드를 병합.

    같은 입력에는 항상 같은 결과를 반환하는 순수 함수입니다.
    입력 레코드에 없는 제목의 이슈는 만들지 않습니다.

    Args:
        file_path: 파일 경로
        records: 이 파일의 리뷰 레코드 (실패 레코드 포함)
        total_expected_reviewers: 이 파일을 리뷰해야 했던 리뷰어 수

    Returns:
        FileMergedReview 객체
    """
    successful = [r for r in records if r.is_success]

    if not successful:
        return FileMergedReview(
            file_path=file_path,
            issues=[],
            summary=NO_SUCCESSFUL_REVIEWS_MESSAGE,
            records=list(records),
        )

    if len(successful) == 1:
        record = successful[0]
        return FileMergedReview(
            file_path=file_path,
            issues=[
                MergedIssue(
                    title=issue.title,
                    severity=issue.severity,
                    description=issue.description,
                    consensus=Consensus.SINGLE,
                    models=[record.model],
                    file=issue.file or file_path,
                    line=issue.line,
                    suggestion=issue.suggestion,
                )
                for issue in record.issues
            ],
            summary=record.summary,
            records=list(records),
        )

    groups: dict[str, _IssueGroup] = {}
    for record in successful:
        for issue in record.issues:
            key = normalize_title(issue.title)
            group = groups.get(key)
            if group is None:
                groups[key] = _IssueGroup.start(issue, record.model)
            else:
                group.add(issue, record.model)

    issues = [
        MergedIssue(
            title=group.first.title,
            severity=group.severity,
            description=group.description,
            consensus=determine_consensus(
                len(group.models), total_expected_reviewers
            ),
            models=list(group.models),
            file=group.file or file_path,
            line=group.line,
            suggestion=group.suggestion,
        )
        for group in groups.values()
    ]
    # 안정 정렬: 같은 심각도는 처음 발견된 순서 유지
    issues.sort(key=lambda i: i.severity.rank, reverse=True)

    summary = SUMMARY_SEPARATOR.join(r.summary for r in successful if r.summary)

    return FileMergedReview(
        file_path=file_path,
        issues=issues,
        summary=summary,
        records=list(records),
    )


# ============================================================
# 병합 전략
# ============================================================


class MergeStrategy(ABC):
    """파일별 병합 전략 인터페이스."""

    name: str

    @abstractmethod
    async def merge(
        self,
        file_path: str,
        records: list[FileReviewRecord],
        total_expected_reviewers: int,
    ) -> FileMergedReview:
        ...


class NaiveMergeStrategy(MergeStrategy):
    """제목 기반 결정적 병합 (기본값)."""

    name = "naive"

    async def merge(
        self,
        file_path: str,
        records: list[FileReviewRecord],
        total_expected_reviewers: int,
    ) -> FileMergedReview:
        return merge_file_reviews(file_path, records, total_expected_reviewers)


class AIMergeStrategy(MergeStrategy):
    """병합 모델이 의미가 같은 이슈를 묶는 병합.

    성공한 리뷰가 2개 이상일 때만 모델을 호출합니다. 호출이 실패하면
    제목 기반 병합으로 대체합니다. 결과는 결정적이지 않습니다.
    """

    name = "ai"

    def __init__(
        self,
        pool: ReviewerClientPool,
        model: str,
        prompt_builder: PromptBuilder | None = None,
        timeout: float = 600,
        policy: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """AIMergeStrategy 초기화.

        Args:
            pool: 병합 모델이 등록된 클라이언트 풀
            model: 병합에 사용할 모델
            prompt_builder: 프롬프트 생성기
            timeout: 호출 타임아웃 (초)
            policy: 재시도 정책
            sleep: 백오프 대기 함수
        """
        self.pool = pool
        self.model = model
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.timeout = timeout
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def merge(
        self,
        file_path: str,
        records: list[FileReviewRecord],
        total_expected_reviewers: int,
    ) -> FileMergedReview:
        naive = merge_file_reviews(file_path, records, total_expected_reviewers)
        successful = [r for r in records if r.is_success]
        if len(successful) < 2:
            return naive

        client = self.pool.get_client(self.model)
        system_prompt = self.prompt_builder.merge_system_prompt()
        message = self.prompt_builder.merge_message(
            file_path, successful, total_expected_reviewers
        )

        async def attempt():
            text = await send_prompt(
                client, self.model, system_prompt, message, self.timeout
            )
            return parse_merge_response(text)

        result = await call_with_retry(
            attempt, self.policy, self._sleep, label=f"{file_path} 병합 ({self.model})"
        )
        if not result.succeeded:
            logger.warning(f"AI 병합 실패, 기본 병합 사용 ({file_path}): {result.error}")
            return naive

        ai_issues, summary = result.value
        issues = self._restrict_to_inputs(ai_issues, naive, total_expected_reviewers)
        if naive.issues and not issues:
            logger.warning(f"AI 병합 결과에 유효한 이슈가 없어 기본 병합 사용: {file_path}")
            return naive

        return FileMergedReview(
            file_path=file_path,
            issues=issues,
            summary=summary or naive.summary,
            records=list(records),
        )

    @staticmethod
    def _restrict_to_inputs(
        ai_issues: list[MergedIssue],
        naive: FileMergedReview,
        total_expected_reviewers: int,
    ) -> list[MergedIssue]:
        """입력 레코드에 있던 제목만 남기고, 모델/합의 수준은 입력 기준으로 보정."""
        known = {normalize_title(i.title): i for i in naive.issues}
        issues = []
        seen = set()
        for issue in ai_issues:
            key = normalize_title(issue.title)
            source = known.get(key)
            if source is None or key in seen:
                logger.debug(f"입력에 없는 이슈 제외: {issue.title}")
                continue
            seen.add(key)

            models = [m for m in dict.fromkeys(issue.models) if m in source.models]
            models = models or list(source.models)
            issue.models = models
            issue.consensus = determine_consensus(len(models), total_expected_reviewers)
            issue.file = issue.file or source.file
            issues.append(issue)

        issues.sort(key=lambda i: i.severity.rank, reverse=True)
        return issues


def get_merge_strategy(
    name: str,
    pool: ReviewerClientPool | None = None,
    model: str | None = None,
    **kwargs,
) -> MergeStrategy:
    """이름으로 병합 전략 생성.

    Raises:
        ValueError: 알 수 없는 전략이거나 AI 병합에 필요한 인자가 없는 경우
    """
    if name == "naive":
        return NaiveMergeStrategy()
    if name == "ai":
        if pool is None or model is None:
            raise ValueError("AI 병합에는 클라이언트 풀과 병합 모델이 필요합니다.")
        return AIMergeStrategy(pool, model, **kwargs)
    raise ValueError(f"알 수 없는 병합 전략: {name}. 사용 가능: naive, ai")
