"""규칙 기반 파일 분류 (리뷰 / 건너뜀 / 컨텍스트 전용)."""

import re

from multi_review.shared.models import FileUnit, TriagedFile, TriageDecision

LOCKFILE_NAMES = frozenset(
    {
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "bun.lockb",
        "bun.lock",
        "composer.lock",
        "gemfile.lock",
        "cargo.lock",
        "poetry.lock",
        "pipfile.lock",
        "uv.lock",
        "go.sum",
        "flake.lock",
    }
)

MEDIA_EXTENSIONS = (
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".ico",
    ".webp",
    ".avif",
    ".mp3",
    ".mp4",
    ".wav",
    ".ogg",
    ".webm",
    ".ttf",
    ".otf",
    ".woff",
    ".woff2",
    ".eot",
    ".pdf",
    ".zip",
    ".tar",
    ".gz",
)

_MINIFIED_PATTERN = re.compile(r"\.min\.(js|css|html)$")
_GENERATED_PATTERNS = [
    re.compile(p)
    for p in (
        r"^dist/",
        r"^build/",
        r"^out/",
        r"^\.next/",
        r"^\.nuxt/",
        r"^\.output/",
        r"^coverage/",
        r"\.generated\.\w+$",
        r"\.g\.\w+$",  # 예: .g.dart, .g.ts
        r"^vendor/",
        r"^node_modules/",
    )
]


def triage_by_rules(unit: FileUnit) -> TriagedFile | None:
    """규칙만으로 파일 분류.

    Args:
        unit: 분류할 파일

    Returns:
        TriagedFile. 규칙으로 판단할 수 없으면 None.
    """
    if unit.is_binary:
        return TriagedFile(unit, TriageDecision.SKIP, "binary file")

    path = unit.path.lower()
    basename = path.rsplit("/", 1)[-1]

    if basename in LOCKFILE_NAMES:
        return TriagedFile(unit, TriageDecision.SKIP, "lockfile")
    if _MINIFIED_PATTERN.search(path):
        return TriagedFile(unit, TriageDecision.SKIP, "minified file")
    if any(p.search(path) for p in _GENERATED_PATTERNS):
        return TriagedFile(unit, TriageDecision.SKIP, "generated/build output")
    if path.endswith(".snap") or "__snapshots__/" in path:
        return TriagedFile(unit, TriageDecision.SKIP, "snapshot file")
    if path.endswith(".map"):
        return TriagedFile(unit, TriageDecision.SKIP, "source map")
    if path.endswith(MEDIA_EXTENSIONS):
        return TriagedFile(unit, TriageDecision.SKIP, "media/asset file")

    # 삭제된 파일은 이해에는 도움이 되지만 리뷰할 코드가 없음
    if unit.is_deleted:
        return TriagedFile(unit, TriageDecision.CONTEXT_ONLY, "deleted file")

    if unit.additions == 0 and unit.deletions == 0:
        return TriagedFile(unit, TriageDecision.SKIP, "no changes")

    return None


def triage_files(units: list[FileUnit]) -> list[TriagedFile]:
    """모든 파일 분류. 규칙으로 걸러지지 않은 파일은 리뷰 대상."""
    triaged = []
    for unit in units:
        result = triage_by_rules(unit)
        if result is None:
            result = TriagedFile(unit, TriageDecision.REVIEW, "source change")
        triaged.append(result)
    return triaged
