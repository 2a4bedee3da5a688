"""출력 포매터 테스트."""

import json

import pytest
from rich.console import Console

from multi_review.shared.models import (
    AggregatedReport,
    Consensus,
    FileMergedReview,
    FileReviewRecord,
    MergedIssue,
    ModelPerformance,
    ReviewIssue,
    ReviewStats,
    ReviewStatus,
    Severity,
    TriageDecision,
    WalkthroughEntry,
)
from multi_review.shared.output import (
    ConsoleFormatter,
    JSONFormatter,
    MarkdownFormatter,
    get_formatter,
)


@pytest.fixture
def report() -> AggregatedReport:
    issue = MergedIssue(
        title="SQL Injection",
        severity=Severity.CRITICAL,
        description="Query | built from [input]",
        consensus=Consensus.MAJORITY,
        models=["model-a", "model-b"],
        file="app.py",
        line=12,
        suggestion="Use parameters",
    )
    return AggregatedReport(
        walkthrough=[
            WalkthroughEntry("app.py", "Risky | change", TriageDecision.REVIEW),
            WalkthroughEntry("yarn.lock", "Skipped: lockfile", TriageDecision.SKIP),
            WalkthroughEntry("clean.py", "Fine", TriageDecision.REVIEW),
        ],
        file_reviews=[
            FileMergedReview("app.py", [issue], "Risky change"),
            FileMergedReview("clean.py", [], "Fine"),
        ],
        stats=ReviewStats(
            total_files=3,
            reviewed_files=2,
            skipped_files=1,
            total_issues=1,
            critical_count=1,
        ),
        model_performance=[
            ModelPerformance("model-a", total_records=2, success_count=2, avg_duration_seconds=1.2)
        ],
    )


@pytest.fixture
def failing_report() -> AggregatedReport:
    """모델 하나는 성공, 나머지는 에러/타임아웃인 보고서."""
    records = [
        FileReviewRecord(
            model="model-a",
            perspective="logic",
            file_path="app.py",
            status=ReviewStatus.SUCCESS,
            issues=(ReviewIssue("Off by one", Severity.WARNING, "loop bound"),),
            duration_seconds=1.5,
        ),
        FileReviewRecord(
            model="model-b",
            perspective="logic",
            file_path="app.py",
            status=ReviewStatus.ERROR,
            duration_seconds=0.3,
            retries=2,
            error="boom 503",
        ),
        FileReviewRecord(
            model="model-c",
            perspective="logic",
            file_path="app.py",
            status=ReviewStatus.TIMEOUT,
            duration_seconds=30.0,
            retries=1,
            error="timed out after 30s",
        ),
    ]
    return AggregatedReport(
        walkthrough=[],
        file_reviews=[FileMergedReview("app.py", [], "", records=records)],
        stats=ReviewStats(total_files=1, reviewed_files=1),
    )

class TestGetFormatter:
    def test_known(self):
        assert isinstance(get_formatter("JSON"), JSONFormatter)
        assert isinstance(get_formatter("markdown"), MarkdownFormatter)
        assert isinstance(get_formatter(), ConsoleFormatter)

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unsupported format type"):
            get_formatter("xml")


class TestJSONFormatter:
    """JSON 포매터 테스트."""

    def test_report(self, report):
        data = json.loads(JSONFormatter().format(report))

        assert data["stats"]["critical_count"] == 1
        assert data["walkthrough"][1]["decision"] == "skip"
        issue = data["file_reviews"][0]["issues"][0]
        assert issue["severity"] == "critical"
        assert issue["consensus"] == "majority"
        assert issue["models"] == ["model-a", "model-b"]
        assert data["model_performance"][0]["model"] == "model-a"


class TestMarkdownFormatter:
    """Markdown 포매터 테스트."""

    def test_report(self, report):
        text = MarkdownFormatter().format(report)

        assert text.startswith("# Multi-Model Code Review")
        assert "## Walkthrough" in text
        assert "| `app.py` | review | Risky \\| change |" in text
        assert "### `app.py`" in text
        assert "- **[CRITICAL]** SQL Injection (line 12) *(majority: model-a, model-b)*" in text
        assert "  - *Suggestion*: Use parameters" in text
        assert "*No issues found.*" in text
        assert "| model-a | 2 | 2 | 0 | 0 | 1.2s |" in text

    def test_failed_reviews(self, failing_report):
        text = MarkdownFormatter().format(failing_report)

        assert "## Failed Reviews" in text
        assert "| `app.py` | model-b | logic | error | 2 | boom 503 |" in text
        assert "| `app.py` | model-c | logic | timeout | 1 | timed out after 30s |" in text
        # 성공한 기록은 실패 목록에 없음
        assert "model-a | logic | success" not in text
        assert "## Per-File Model Results" not in text

    def test_no_failed_section_when_all_succeed(self, report):
        assert "## Failed Reviews" not in MarkdownFormatter().format(report)

    def test_verbose_record_details(self, failing_report):
        text = MarkdownFormatter(verbose=True).format(failing_report)

        assert "## Per-File Model Results" in text
        assert "- **model-a** / logic: success (1.5s) 1 issues" in text
        assert "  - [WARNING] Off by one" in text
        assert "- **model-b** / logic: error (0.3s) boom 503" in text

    def test_file_review(self):
        text = MarkdownFormatter().format(FileMergedReview("x.py", [], ""))

        assert text.startswith("### `x.py`")


class TestConsoleFormatter:
    """Rich 콘솔 포매터 테스트."""

    def test_report(self, report):
        console = Console(record=True, width=200, force_terminal=False)

        text = ConsoleFormatter(console).format(report)

        assert "Multi-Model Code Review" in text
        assert "app.py" in text
        assert "[critical]" in text
        # 대괄호가 Rich 마크업으로 해석되지 않음
        assert "[input]" in text
        assert "majority: model-a, model-b" in text
        # 파일 리뷰 출력 이후에도 앞부분이 남아 있음
        assert "Statistics" in text
        assert "Walkthrough" in text
        assert "Model Performance" in text

    def test_failed_reviews(self, failing_report):
        console = Console(record=True, width=200, force_terminal=False)

        text = ConsoleFormatter(console).format(failing_report)

        assert "Failed Reviews" in text
        assert "boom 503" in text
        assert "timed out after 30s" in text
        assert "Per-File Model Results" not in text

    def test_verbose_record_details(self, failing_report):
        console = Console(record=True, width=200, force_terminal=False)

        text = ConsoleFormatter(console, verbose=True).format(failing_report)

        assert "Per-File Model Results" in text
        assert "-- app.py --" in text
        assert "model-a (logic, 1.5s) 1 issues" in text
        assert "[warning] Off by one" in text

    def test_get_formatter_passes_verbose(self):
        assert get_formatter("console", verbose=True).verbose is True
        assert get_formatter("markdown", verbose=True).verbose is True
