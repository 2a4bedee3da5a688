"""실행 단위 결과 집계 (파일 요약, 통계, 모델별 성과)."""

from multi_review.shared.models import (
    AggregatedReport,
    FileMergedReview,
    ModelPerformance,
    ReviewStats,
    ReviewStatus,
    Severity,
    TriagedFile,
    TriageDecision,
    WalkthroughEntry,
)


def aggregate(
    triaged: list[TriagedFile],
    file_reviews: list[FileMergedReview],
    models: list[str],
) -> AggregatedReport:
    """분류 결과와 파일별 리뷰를 최종 보고서로 집계.

    Args:
        triaged: 분류가 끝난 전체 파일
        file_reviews: 리뷰한 파일들의 병합 결과
        models: 리뷰에 사용한 모델 목록

    Returns:
        AggregatedReport 객체
    """
    return AggregatedReport(
        walkthrough=_build_walkthrough(triaged, file_reviews),
        file_reviews=list(file_reviews),
        stats=_compute_stats(triaged, file_reviews),
        model_performance=_compute_model_performance(file_reviews, models),
    )


def _build_walkthrough(
    triaged: list[TriagedFile], file_reviews: list[FileMergedReview]
) -> list[WalkthroughEntry]:
    reviews = {r.file_path: r for r in file_reviews}

    entries = []
    for t in triaged:
        review = reviews.get(t.file.path)
        if t.decision is TriageDecision.SKIP:
            summary = f"Skipped: {t.reason}"
        elif t.decision is TriageDecision.CONTEXT_ONLY:
            summary = f"Context only: {t.reason}"
        elif review is not None:
            summary = review.summary or "Reviewed (no summary)"
        else:
            summary = "Pending review"
        entries.append(WalkthroughEntry(t.file.path, summary, t.decision))
    return entries


def _compute_stats(
    triaged: list[TriagedFile], file_reviews: list[FileMergedReview]
) -> ReviewStats:
    issues = [issue for review in file_reviews for issue in review.issues]

    def count(severity: Severity) -> int:
        return sum(1 for i in issues if i.severity is severity)

    def files_with(decision: TriageDecision) -> int:
        return sum(1 for t in triaged if t.decision is decision)

    return ReviewStats(
        total_files=len(triaged),
        reviewed_files=files_with(TriageDecision.REVIEW),
        skipped_files=files_with(TriageDecision.SKIP),
        context_only_files=files_with(TriageDecision.CONTEXT_ONLY),
        total_issues=len(issues),
        critical_count=count(Severity.CRITICAL),
        warning_count=count(Severity.WARNING),
        suggestion_count=count(Severity.SUGGESTION),
        good_count=count(Severity.GOOD),
    )


def _compute_model_performance(
    file_reviews: list[FileMergedReview], models: list[str]
) -> list[ModelPerformance]:
    performance = []
    for model in dict.fromkeys(models):
        records = [r for review in file_reviews for r in review.records if r.model == model]
        total_duration = sum(r.duration_seconds for r in records)
        performance.append(
            ModelPerformance(
                model=model,
                total_records=len(records),
                success_count=sum(1 for r in records if r.status is ReviewStatus.SUCCESS),
                error_count=sum(1 for r in records if r.status is ReviewStatus.ERROR),
                timeout_count=sum(1 for r in records if r.status is ReviewStatus.TIMEOUT),
                total_duration_seconds=total_duration,
                avg_duration_seconds=total_duration / len(records) if records else 0.0,
            )
        )
    return performance


def has_critical_issues(report: AggregatedReport) -> bool:
    """critical 이슈가 하나라도 있는지 여부 (CLI 종료 코드용)."""
    return report.stats.critical_count > 0
