"""출력 포매터 모듈."""

import json
from abc import ABC, abstractmethod
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from multi_review.shared.models import (
    AggregatedReport,
    Consensus,
    FileMergedReview,
    FileReviewRecord,
    ReviewStatus,
    Severity,
)

SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.WARNING: "yellow",
    Severity.SUGGESTION: "blue",
    Severity.GOOD: "green",
}

CONSENSUS_LABELS = {
    Consensus.UNANIMOUS: "unanimous",
    Consensus.MAJORITY: "majority",
    Consensus.SINGLE: "single",
}

STATUS_STYLES = {
    ReviewStatus.SUCCESS: "green",
    ReviewStatus.ERROR: "red",
    ReviewStatus.TIMEOUT: "yellow",
}


def failed_records(file_reviews: list[FileMergedReview]) -> list[FileReviewRecord]:
    """성공하지 못한 리뷰 기록 (파일 순서 유지)."""
    return [
        record
        for file_review in file_reviews
        for record in file_review.records
        if not record.is_success
    ]


def _record_outcome(record: FileReviewRecord) -> str:
    if record.is_success:
        return f"{len(record.issues)} issues"
    return record.error or "failed"


def _table_cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


class BaseFormatter(ABC):
    """출력 포매터 추상 클래스."""

    @abstractmethod
    def format(self, data: Any) -> str:
        """데이터를 포맷된 문자열로 변환.

        Args:
            data: 포맷할 데이터 객체

        Returns:
            포맷된 문자열
        """
        ...

    def _get_formatter_method(self, data: Any) -> str:
        """데이터 타입에 맞는 포맷 메서드 호출."""
        formatters = {
            AggregatedReport: self._format_report,
            FileMergedReview: self._format_file_review,
        }

        formatter = formatters.get(type(data))
        if formatter:
            return formatter(data)
        return self._format_generic(data)

    @abstractmethod
    def _format_report(self, data: AggregatedReport) -> str:
        """AggregatedReport 포맷."""
        ...

    @abstractmethod
    def _format_file_review(self, data: FileMergedReview) -> str:
        """FileMergedReview 포맷."""
        ...

    @abstractmethod
    def _format_generic(self, data: Any) -> str:
        """일반 데이터 포맷."""
        ...


class ConsoleFormatter(BaseFormatter):
    """Rich를 사용한 터미널 출력 포매터.

    `_print_*` 헬퍼는 콘솔에 출력만 하고, `_format_*` 진입점이 마지막에
    한 번만 export 합니다 (export_text는 기록 버퍼를 비움).
    """

    def __init__(self, console: Console | None = None, verbose: bool = False) -> None:
        self.console = console or Console(record=True)
        self.verbose = verbose

    def format(self, data: Any) -> str:
        """데이터를 Rich 포맷으로 콘솔에 출력하고 문자열 반환."""
        return self._get_formatter_method(data)

    def _format_report(self, data: AggregatedReport) -> str:
        """AggregatedReport를 Rich 포맷으로 출력."""
        self._print_report(data)
        return self.console.export_text()

    def _format_file_review(self, data: FileMergedReview) -> str:
        """FileMergedReview를 Rich 포맷으로 출력."""
        self._print_file_review(data)
        return self.console.export_text()

    def _format_generic(self, data: Any) -> str:
        """일반 데이터를 Rich 포맷으로 출력."""
        if hasattr(data, "__dict__"):
            self.console.print(Panel(str(data.__dict__), title=type(data).__name__))
        else:
            self.console.print(str(data))
        return self.console.export_text()

    # ============================================================
    # 출력 헬퍼
    # ============================================================

    def _print_report(self, data: AggregatedReport) -> None:
        self.console.print(
            Panel("[bold]Multi-Model Code Review[/bold]", border_style="blue")
        )

        # 파일별 한 줄 요약
        if data.walkthrough:
            walkthrough = Table(title="Walkthrough", show_header=True)
            walkthrough.add_column("File", style="cyan")
            walkthrough.add_column("Decision", style="magenta")
            walkthrough.add_column("Summary")
            for entry in data.walkthrough:
                walkthrough.add_row(
                    entry.file_path, entry.decision.value, Text(entry.summary)
                )
            self.console.print(walkthrough)

        stats = data.stats
        stats_table = Table(title="Statistics", show_header=True)
        stats_table.add_column("Metric", style="cyan")
        stats_table.add_column("Value", style="green")
        stats_table.add_row("Files", str(stats.total_files))
        stats_table.add_row("Reviewed", str(stats.reviewed_files))
        stats_table.add_row("Skipped", str(stats.skipped_files))
        stats_table.add_row("Context Only", str(stats.context_only_files))
        stats_table.add_row("Issues", str(stats.total_issues))
        stats_table.add_row("Critical", f"[bold red]{stats.critical_count}[/bold red]")
        stats_table.add_row("Warning", f"[yellow]{stats.warning_count}[/yellow]")
        stats_table.add_row("Suggestion", f"[blue]{stats.suggestion_count}[/blue]")
        stats_table.add_row("Good", f"[green]{stats.good_count}[/green]")
        self.console.print(stats_table)

        for file_review in data.file_reviews:
            self._print_file_review(file_review)

        if data.model_performance:
            perf_table = Table(title="Model Performance", show_header=True)
            perf_table.add_column("Model", style="cyan")
            perf_table.add_column("Reviews")
            perf_table.add_column("Success", style="green")
            perf_table.add_column("Error", style="red")
            perf_table.add_column("Timeout", style="yellow")
            perf_table.add_column("Avg Time")
            for perf in data.model_performance:
                perf_table.add_row(
                    perf.model,
                    str(perf.total_records),
                    str(perf.success_count),
                    str(perf.error_count),
                    str(perf.timeout_count),
                    f"{perf.avg_duration_seconds:.1f}s",
                )
            self.console.print(perf_table)

        # 실패가 있으면 항상 출력
        self._print_failed_reviews(data.file_reviews)

        if self.verbose:
            self._print_record_details(data.file_reviews)

    def _print_file_review(self, data: FileMergedReview) -> None:
        self.console.print(
            f"\n[bold magenta]{escape(data.file_path)}[/bold magenta] "
            f"[dim]({len(data.issues)} issues)[/dim]"
        )

        for issue in data.issues:
            style = SEVERITY_STYLES.get(issue.severity, "white")
            location = ""
            if issue.line:
                location = f" [dim]line {issue.line}[/dim]"

            self.console.print(
                f"  [{style}]{escape(f'[{issue.severity.value}]')}[/{style}] "
                f"{escape(issue.title)}{location} "
                f"[dim]({CONSENSUS_LABELS[issue.consensus]}: "
                f"{escape(', '.join(issue.models))})[/dim]"
            )
            self.console.print(f"    {escape(issue.description)}")
            if issue.suggestion:
                self.console.print(
                    f"    [green]Suggestion:[/green] {escape(issue.suggestion)}"
                )

        if data.summary:
            self.console.print(f"  [dim]Summary: {escape(data.summary)}[/dim]")

    def _print_failed_reviews(self, file_reviews: list[FileMergedReview]) -> None:
        failures = failed_records(file_reviews)
        if not failures:
            return

        table = Table(title="Failed Reviews", show_header=True, title_style="bold red")
        table.add_column("File", style="cyan")
        table.add_column("Model")
        table.add_column("Perspective")
        table.add_column("Status")
        table.add_column("Retries")
        table.add_column("Error", style="red")
        for record in failures:
            table.add_row(
                record.file_path,
                record.model,
                record.perspective,
                Text(record.status.value, style=STATUS_STYLES[record.status]),
                str(record.retries),
                Text(record.error or "unknown error"),
            )
        self.console.print(table)

    def _print_record_details(self, file_reviews: list[FileMergedReview]) -> None:
        """모델/관점별 원본 결과 (--verbose)."""
        self.console.print("\n[bold underline]Per-File Model Results[/bold underline]")

        for file_review in file_reviews:
            self.console.print(f"\n[bold]-- {escape(file_review.file_path)} --[/bold]")
            for record in file_review.records:
                style = STATUS_STYLES[record.status]
                self.console.print(
                    f"  [{style}]{record.status.value}[/{style}] "
                    f"[bold]{escape(record.model)}[/bold] "
                    f"[dim]({escape(record.perspective)}, "
                    f"{record.duration_seconds:.1f}s)[/dim] "
                    f"{escape(_record_outcome(record))}"
                )
                for issue in record.issues:
                    self.console.print(
                        f"    {escape(f'[{issue.severity.value}]')} {escape(issue.title)}"
                    )


class JSONFormatter(BaseFormatter):
    """JSON 출력 포매터 (파이프라인 친화적)."""

    def __init__(self, indent: int = 2) -> None:
        self.indent = indent

    def format(self, data: Any) -> str:
        """데이터를 JSON 문자열로 변환."""
        return self._get_formatter_method(data)

    def _to_serializable(self, obj: Any) -> Any:
        """객체를 JSON 직렬화 가능한 형태로 변환."""
        if is_dataclass(obj) and not isinstance(obj, type):
            return {k: self._to_serializable(v) for k, v in asdict(obj).items()}
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, Path):
            return str(obj)
        if isinstance(obj, (list, tuple)):
            return [self._to_serializable(item) for item in obj]
        if isinstance(obj, dict):
            return {k: self._to_serializable(v) for k, v in obj.items()}
        return obj

    def _to_json(self, data: Any) -> str:
        """객체를 JSON 문자열로 변환하는 헬퍼."""
        return json.dumps(
            self._to_serializable(data),
            indent=self.indent,
            ensure_ascii=False,
        )

    def _format_report(self, data: AggregatedReport) -> str:
        """AggregatedReport를 JSON으로 변환."""
        return self._to_json(data)

    def _format_file_review(self, data: FileMergedReview) -> str:
        """FileMergedReview를 JSON으로 변환."""
        return self._to_json(data)

    def _format_generic(self, data: Any) -> str:
        """일반 데이터를 JSON으로 변환."""
        return self._to_json(data)


class MarkdownFormatter(BaseFormatter):
    """Markdown 출력 포매터 (PR 코멘트용)."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    def format(self, data: Any) -> str:
        """데이터를 Markdown 문자열로 변환."""
        return self._get_formatter_method(data)

    def _format_report(self, data: AggregatedReport) -> str:
        """AggregatedReport를 Markdown으로 변환."""
        stats = data.stats
        lines = [
            "# Multi-Model Code Review",
            "",
            "## Statistics",
            "",
            f"- **Files**: {stats.total_files} "
            f"(reviewed {stats.reviewed_files}, skipped {stats.skipped_files}, "
            f"context only {stats.context_only_files})",
            f"- **Issues**: {stats.total_issues} "
            f"(critical {stats.critical_count}, warning {stats.warning_count}, "
            f"suggestion {stats.suggestion_count}, good {stats.good_count})",
            "",
        ]

        if data.walkthrough:
            lines.extend(
                [
                    "## Walkthrough",
                    "",
                    "| File | Decision | Summary |",
                    "|------|----------|---------|",
                ]
            )
            for entry in data.walkthrough:
                summary = _table_cell(entry.summary)
                lines.append(
                    f"| `{entry.file_path}` | {entry.decision.value} | {summary} |"
                )
            lines.append("")

        if data.file_reviews:
            lines.extend(["## File Reviews", ""])
            for file_review in data.file_reviews:
                lines.append(self._format_file_review(file_review))

        if data.model_performance:
            lines.extend(
                [
                    "## Model Performance",
                    "",
                    "| Model | Reviews | Success | Error | Timeout | Avg Time |",
                    "|-------|---------|---------|-------|---------|----------|",
                ]
            )
            for perf in data.model_performance:
                lines.append(
                    f"| {perf.model} | {perf.total_records} | {perf.success_count} | "
                    f"{perf.error_count} | {perf.timeout_count} | "
                    f"{perf.avg_duration_seconds:.1f}s |"
                )
            lines.append("")

        failures = failed_records(data.file_reviews)
        if failures:
            lines.extend(
                [
                    "## Failed Reviews",
                    "",
                    "| File | Model | Perspective | Status | Retries | Error |",
                    "|------|-------|-------------|--------|---------|-------|",
                ]
            )
            for record in failures:
                error = _table_cell(record.error or "unknown error")
                lines.append(
                    f"| `{record.file_path}` | {record.model} | {record.perspective} | "
                    f"{record.status.value} | {record.retries} | {error} |"
                )
            lines.append("")

        if self.verbose:
            lines.extend(self._record_detail_lines(data.file_reviews))

        return "\n".join(lines)

    def _record_detail_lines(self, file_reviews: list[FileMergedReview]) -> list[str]:
        """모델/관점별 원본 결과 (--verbose)."""
        lines = ["## Per-File Model Results", ""]
        for file_review in file_reviews:
            lines.extend([f"### `{file_review.file_path}`", ""])
            for record in file_review.records:
                lines.append(
                    f"- **{record.model}** / {record.perspective}: "
                    f"{record.status.value} ({record.duration_seconds:.1f}s) "
                    f"{_record_outcome(record)}"
                )
                for issue in record.issues:
                    lines.append(f"  - [{issue.severity.value.upper()}] {issue.title}")
            lines.append("")
        return lines

    def _format_file_review(self, data: FileMergedReview) -> str:
        """FileMergedReview를 Markdown으로 변환."""
        lines = [
            f"### `{data.file_path}`",
            "",
        ]

        if not data.issues:
            lines.extend(["*No issues found.*", ""])

        for issue in data.issues:
            location = f" (line {issue.line})" if issue.line else ""
            models = ", ".join(issue.models)
            lines.append(
                f"- **[{issue.severity.value.upper()}]** {issue.title}{location} "
                f"*({CONSENSUS_LABELS[issue.consensus]}: {models})*"
            )
            lines.append(f"  - {issue.description}")
            if issue.suggestion:
                lines.append(f"  - *Suggestion*: {issue.suggestion}")
            lines.append("")

        if data.summary:
            lines.extend([f"**Summary**: {data.summary}", ""])

        return "\n".join(lines)

    def _format_generic(self, data: Any) -> str:
        """일반 데이터를 Markdown으로 변환."""
        if hasattr(data, "__dict__"):
            lines = [f"# {type(data).__name__}", ""]
            for key, value in data.__dict__.items():
                lines.append(f"- **{key}**: {value}")
            return "\n".join(lines)
        return f"```\n{data}\n```"


def get_formatter(
    format_type: str = "console", color: bool = True, verbose: bool = False
) -> BaseFormatter:
    """포매터 팩토리 함수.

    Args:
        format_type: 출력 형식 ("console", "json", "markdown")
        color: 콘솔 출력 색상 사용 여부
        verbose: 모델/관점별 원본 결과 포함 여부

    Returns:
        해당 형식의 포매터 인스턴스

    Raises:
        ValueError: 지원하지 않는 형식인 경우
    """
    formatters = {
        "console": ConsoleFormatter,
        "json": JSONFormatter,
        "markdown": MarkdownFormatter,
    }

    formatter_class = formatters.get(format_type.lower())
    if formatter_class is None:
        supported = ", ".join(formatters.keys())
        msg = f"Unsupported format type: {format_type}. Supported: {supported}"
        raise ValueError(msg)

    if formatter_class is ConsoleFormatter:
        return ConsoleFormatter(
            Console(record=True, no_color=not color), verbose=verbose
        )
    if formatter_class is MarkdownFormatter:
        return MarkdownFormatter(verbose=verbose)
    return formatter_class()
