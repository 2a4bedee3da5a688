"""multi-review CLI 엔트리포인트."""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from multi_review import __version__
from multi_review.shared.config import (
    AppConfig,
    get_config_path,
    load_config,
    parse_model_list,
)
from multi_review.shared.models import OutputFormat
from multi_review.shared.output import get_formatter

console = Console()
err_console = Console(stderr=True)


class Context:
    """CLI 컨텍스트."""

    def __init__(self):
        self.config: AppConfig | None = None
        self.config_path: Path | None = None
        self.format = "console"
        self.verbose = False


pass_context = click.make_pass_decorator(Context, ensure=True)


def _setup_logging(verbose: bool) -> None:
    """로그를 stderr로 Rich 포맷 출력 (--verbose면 DEBUG)."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=verbose)],
        force=True,
    )
    # SDK 내부 HTTP 로그는 너무 많음
    for noisy in ("httpx", "httpcore", "openai", "anthropic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="설정 파일 경로",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice([f.value for f in OutputFormat]),
    default=None,
    help="출력 형식 (기본: 설정의 output.default_format)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="상세 출력",
)
@click.version_option(version=__version__, prog_name="multi-review")
@pass_context
def cli(ctx: Context, config: str | None, format: str | None, verbose: bool):
    """multi-review: 여러 AI 모델과 리뷰 관점으로 코드 변경을 리뷰합니다."""
    _setup_logging(verbose)

    try:
        config_path = Path(config) if config else None
        ctx.config_path = get_config_path(config_path)
        ctx.config = load_config(config_path)
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    ctx.format = format or ctx.config.output.default_format
    ctx.verbose = verbose


# ============================================================
# Review 명령어
# ============================================================


def _apply_review_options(config: AppConfig, **options) -> None:
    """CLI 옵션을 설정에 덮어씀 (지정된 값만)."""
    from multi_review.review.perspectives import validate_perspectives

    review = config.review
    if options["models"]:
        review.models = parse_model_list(options["models"])
    if options["perspectives"]:
        review.perspectives = validate_perspectives(options["perspectives"].split(","))

    overrides = {
        "timeout_seconds": options["timeout"],
        "max_retries": options["retries"],
        "retry_delay_seconds": options["retry_delay"],
        "concurrency": options["concurrency"],
        "token_budget": options["token_budget"],
        "max_files_per_batch": options["max_files_per_batch"],
        "merge_strategy": options["merge_strategy"],
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(review, name, value)


@cli.command()
@click.argument("commit_range", required=False)
@click.option("--staged", is_flag=True, help="스테이지된 변경만 리뷰")
@click.option(
    "--diff-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Git 대신 diff 파일을 리뷰",
)
@click.option("--stdin", "from_stdin", is_flag=True, help="표준 입력의 diff를 리뷰")
@click.option(
    "--pr",
    "pr_number",
    type=click.IntRange(min=1),
    help="origin의 pull request를 리뷰 (pull/<번호>/head를 fetch)",
)
@click.option("--models", "-m", help="쉼표로 구분된 모델 목록")
@click.option(
    "--perspectives",
    "-p",
    help="쉼표로 구분된 리뷰 관점 (logic, security, design, performance, ux, testing)",
)
@click.option("--timeout", type=click.FloatRange(min=1), help="호출당 타임아웃 (초)")
@click.option("--retries", type=click.IntRange(min=0), help="호출당 최대 재시도 횟수")
@click.option(
    "--retry-delay", type=click.FloatRange(min=0), help="재시도 기본 대기 시간 (초)"
)
@click.option("--concurrency", type=click.IntRange(min=1), help="동시 리뷰 작업 수")
@click.option("--token-budget", type=click.IntRange(min=1), help="배치당 토큰 예산")
@click.option(
    "--max-files-per-batch", type=click.IntRange(min=1), help="배치당 최대 파일 수"
)
@click.option(
    "--merge-strategy",
    type=click.Choice(["naive", "ai"]),
    help="파일별 병합 방식",
)
@pass_context
def review(
    ctx: Context,
    commit_range: str | None,
    staged: bool,
    diff_file: str | None,
    from_stdin: bool,
    pr_number: int | None,
    **options,
):
    """여러 모델 × 관점으로 코드 변경 리뷰. critical 이슈가 있으면 종료 코드 1."""
    from multi_review.review import ReviewCallbacks, ReviewRunner
    from multi_review.review.aggregator import has_critical_issues

    sources = [
        name
        for name, used in (
            ("--diff-file", diff_file),
            ("--stdin", from_stdin),
            ("--pr", pr_number is not None),
        )
        if used
    ]
    if len(sources) > 1:
        raise click.UsageError(f"{', '.join(sources)}은 함께 사용할 수 없습니다.")
    if pr_number is not None and (staged or commit_range):
        raise click.UsageError("--pr은 --staged, 커밋 범위와 함께 사용할 수 없습니다.")

    try:
        _apply_review_options(ctx.config, **options)
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    review_config = ctx.config.review
    show_progress = ctx.format == "console"

    if show_progress:
        if diff_file:
            console.print(f"[bold]diff 파일 리뷰:[/bold] {diff_file}")
        elif from_stdin:
            console.print("[bold]표준 입력 diff 리뷰[/bold]")
        elif pr_number is not None:
            console.print(f"[bold]Pull request 리뷰:[/bold] #{pr_number}")
        elif staged:
            console.print("[bold]스테이지된 변경 리뷰[/bold]")
        elif commit_range:
            console.print(f"[bold]커밋 범위 리뷰:[/bold] {commit_range}")
        else:
            console.print("[bold]작업 디렉토리 변경 리뷰[/bold]")
        console.print(
            f"[dim]모델: {', '.join(review_config.models)} | "
            f"관점: {', '.join(review_config.perspectives)}[/dim]"
        )

    try:
        with err_console.status("[bold green]리뷰 진행 중...") as status:
            done = {"tasks": 0, "files": 0}

            def on_task_complete(task, result):
                done["tasks"] += 1
                status.update(
                    f"[bold green]리뷰 진행 중...[/bold green] "
                    f"작업 {done['tasks']}개 완료, 파일 {done['files']}개 병합"
                )

            def on_file_complete(merged):
                done["files"] += 1

            runner = ReviewRunner(
                config=ctx.config,
                callbacks=ReviewCallbacks(
                    on_task_complete=on_task_complete,
                    on_file_complete=on_file_complete,
                ),
            )

            if diff_file or from_stdin:
                if diff_file:
                    diff_text = Path(diff_file).read_text(encoding="utf-8")
                else:
                    diff_text = click.get_text_stream("stdin").read()
                report = runner.review_diff_sync(diff_text, root=Path.cwd())
            else:
                report = runner.review_sync(
                    ".", staged=staged, commit_range=commit_range, pr=pr_number
                )

        formatter = get_formatter(
            ctx.format, color=ctx.config.output.color, verbose=ctx.verbose
        )
        output = formatter.format(report)
        if ctx.format != "console":
            click.echo(output)
    except Exception as e:
        console.print(f"[red]오류:[/red] {e}")
        if ctx.verbose:
            import traceback

            console.print(traceback.format_exc())
        raise click.Abort()

    if not report.file_reviews and show_progress:
        console.print("[dim]리뷰할 변경사항이 없습니다.[/dim]")

    if has_critical_issues(report):
        raise SystemExit(1)


# ============================================================
# Perspectives 명령어
# ============================================================


@cli.command()
def perspectives():
    """사용 가능한 리뷰 관점 목록."""
    from multi_review.review.perspectives import PERSPECTIVE_REGISTRY

    for perspective in PERSPECTIVE_REGISTRY.values():
        console.print(f"  [cyan]{perspective.name:<12}[/cyan] {perspective.label}")


# ============================================================
# Config 명령어 그룹
# ============================================================


@cli.group()
@pass_context
def config(ctx: Context):
    """설정 관리."""
    pass


@config.command("show")
@pass_context
def config_show(ctx: Context):
    """현재 설정 표시."""
    if ctx.config_path:
        console.print(f"[bold]설정 파일:[/bold] {ctx.config_path}")
    else:
        console.print("[dim]설정 파일 없음 (기본값 사용)[/dim]")

    review_config = ctx.config.review

    console.print()
    console.print("[bold]LLM 설정:[/bold]")
    console.print(f"  Max Tokens: {ctx.config.llm.max_tokens}")
    console.print(f"  Temperature: {ctx.config.llm.temperature}")
    if ctx.config.llm.provider_map:
        for model, provider in ctx.config.llm.provider_map.items():
            console.print(f"  Provider: {model} -> {provider}")

    console.print()
    console.print("[bold]리뷰 설정:[/bold]")
    console.print(f"  모델: {', '.join(review_config.models)}")
    console.print(f"  관점: {', '.join(review_config.perspectives)}")
    console.print(f"  배치 토큰 예산: {review_config.token_budget:,}")
    console.print(f"  배치당 최대 파일: {review_config.max_files_per_batch}")
    console.print(f"  동시 작업 수: {review_config.concurrency}")
    console.print(f"  타임아웃: {review_config.timeout_seconds}초")
    console.print(
        f"  재시도: {review_config.max_retries}회 "
        f"(기본 대기 {review_config.retry_delay_seconds}초)"
    )
    console.print(f"  병합 방식: {review_config.merge_strategy}")
    if review_config.merge_strategy == "ai":
        console.print(f"  병합 모델: {review_config.resolved_merge_model}")


@config.command("init")
@click.option("--force", is_flag=True, help="기존 파일 덮어쓰기")
@pass_context
def config_init(ctx: Context, force: bool):
    """기본값으로 설정 파일 초기화."""
    from dataclasses import asdict

    import yaml

    target = Path.cwd() / ".multi-review.yaml"

    if target.exists() and not force:
        console.print(f"[red]설정 파일이 이미 존재합니다:[/red] {target}")
        console.print("[dim]--force 옵션으로 덮어쓰기 가능[/dim]")
        return

    target.write_text(
        yaml.safe_dump(asdict(AppConfig()), sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )
    console.print(f"[green]설정 파일 생성됨:[/green] {target}")


if __name__ == "__main__":
    cli()
