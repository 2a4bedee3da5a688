"""공통 데이터 모델 정의."""

from dataclasses import dataclass, field
from enum import Enum

# ============================================================
# 공통 Enum
# ============================================================


class Severity(Enum):
    """리뷰 이슈 심각도 (낮음 → 높음)."""

    GOOD = "good"
    SUGGESTION = "suggestion"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """정렬용 심각도 순위 (good=0 ... critical=3)."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.GOOD: 0,
    Severity.SUGGESTION: 1,
    Severity.WARNING: 2,
    Severity.CRITICAL: 3,
}


class Consensus(Enum):
    """병합된 이슈의 합의 수준."""

    SINGLE = "single"
    MAJORITY = "majority"
    UNANIMOUS = "unanimous"


class ReviewStatus(Enum):
    """단일 리뷰 호출 결과 상태."""

    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


class TriageDecision(Enum):
    """파일 분류 결과."""

    REVIEW = "review"
    SKIP = "skip"
    CONTEXT_ONLY = "context_only"


class OutputFormat(Enum):
    """출력 형식."""

    CONSOLE = "console"
    JSON = "json"
    MARKDOWN = "markdown"


# ============================================================
# 입력 / 배치 모델
# ============================================================


@dataclass(frozen=True)
class FileUnit:
    """리뷰 대상 파일 단위 (diff + 주변 컨텍스트)."""

    path: str
    diff: str
    context: str | None = None
    additions: int = 0
    deletions: int = 0
    is_new: bool = False
    is_deleted: bool = False
    is_binary: bool = False


@dataclass
class Batch:
    """한 번의 리뷰 호출로 묶인 파일 묶음."""

    files: list[FileUnit]
    estimated_tokens: int = 0

    @property
    def paths(self) -> list[str]:
        """배치에 포함된 파일 경로 (순서 유지)."""
        return [f.path for f in self.files]


@dataclass(frozen=True)
class ReviewTask:
    """(배치, 모델, 관점) 조합 하나에 대한 리뷰 작업."""

    batch_index: int
    model: str
    perspective: str


# ============================================================
# 리뷰 결과 모델
# ============================================================


@dataclass(frozen=True)
class ReviewIssue:
    """리뷰어 한 명이 보고한 이슈."""

    title: str
    severity: Severity
    description: str
    file: str | None = None
    line: int | None = None
    suggestion: str | None = None


@dataclass(frozen=True)
class FileReviewRecord:
    """(모델, 관점, 파일) 조합 하나의 리뷰 결과."""

    model: str
    perspective: str
    file_path: str
    status: ReviewStatus
    issues: tuple[ReviewIssue, ...] = ()
    summary: str = ""
    duration_seconds: float = 0.0
    retries: int = 0
    error: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status is ReviewStatus.SUCCESS


@dataclass
class MergedIssue:
    """여러 리뷰어의 의견을 병합한 이슈."""

    title: str
    severity: Severity
    description: str
    consensus: Consensus
    models: list[str] = field(default_factory=list)
    file: str | None = None
    line: int | None = None
    suggestion: str | None = None


@dataclass
class FileMergedReview:
    """파일별 최종 병합 리뷰."""

    file_path: str
    issues: list[MergedIssue]
    summary: str = ""
    records: list[FileReviewRecord] = field(default_factory=list)


# ============================================================
# 실행 단위 집계 모델
# ============================================================


@dataclass(frozen=True)
class TriagedFile:
    """분류가 끝난 파일."""

    file: FileUnit
    decision: TriageDecision
    reason: str


@dataclass
class WalkthroughEntry:
    """파일별 한 줄 요약."""

    file_path: str
    summary: str
    decision: TriageDecision


@dataclass
class ReviewStats:
    """전체 리뷰 통계."""

    total_files: int = 0
    reviewed_files: int = 0
    skipped_files: int = 0
    context_only_files: int = 0
    total_issues: int = 0
    critical_count: int = 0
    warning_count: int = 0
    suggestion_count: int = 0
    good_count: int = 0


@dataclass
class ModelPerformance:
    """모델별 호출 성과."""

    model: str
    total_records: int = 0
    success_count: int = 0
    error_count: int = 0
    timeout_count: int = 0
    total_duration_seconds: float = 0.0
    avg_duration_seconds: float = 0.0


@dataclass
class AggregatedReport:
    """한 번의 리뷰 실행 전체 결과."""

    walkthrough: list[WalkthroughEntry]
    file_reviews: list[FileMergedReview]
    stats: ReviewStats
    model_performance: list[ModelPerformance] = field(default_factory=list)
