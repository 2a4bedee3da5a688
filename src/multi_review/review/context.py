"""작업 트리에서 파일 주변 컨텍스트를 읽는 로더."""

import logging
from dataclasses import replace
from pathlib import Path

from multi_review.shared.models import FileUnit

from .diff_parser import hunk_ranges

logger = logging.getLogger(__name__)


class ContextLoader:
    """변경된 파일의 현재 내용을 리뷰 컨텍스트로 제공합니다.

    파일이 max_lines 이하이면 전체 내용을, 더 길면 hunk 주변 라인만
    라인 번호와 함께 잘라서 반환합니다.
    """

    def __init__(self, root: str | Path = ".", max_lines: int = 300) -> None:
        self.root = Path(root)
        self.max_lines = max_lines

    def load(self, unit: FileUnit) -> str | None:
        """파일 컨텍스트 로드.

        Args:
            unit: 대상 파일

        Returns:
            컨텍스트 문자열. 삭제/바이너리/존재하지 않는 파일이면 None.
        """
        if unit.is_deleted or unit.is_binary:
            return None

        file_path = self.root / unit.path
        if not file_path.is_file():
            return None

        try:
            content = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"컨텍스트 로드 실패 ({unit.path}): {e}")
            return None

        lines = content.split("\n")
        if len(lines) <= self.max_lines:
            return content

        return self._extract_hunk_context(unit.diff, lines)

    def with_context(self, units: list[FileUnit]) -> list[FileUnit]:
        """컨텍스트가 채워진 새 FileUnit 목록 반환."""
        return [replace(unit, context=self.load(unit)) for unit in units]

    def _extract_hunk_context(self, diff: str, lines: list[str]) -> str:
        """큰 파일에서 변경된 hunk 주변만 추출."""
        ranges = hunk_ranges(diff)
        if not ranges:
            return "\n".join(lines[: self.max_lines])

        # hunk당 컨텍스트 창과 그 25% 여유분
        per_hunk = self.max_lines // len(ranges)
        padding = per_hunk // 4

        included: set[int] = set()
        for start, length in ranges:
            begin = max(0, start - 1 - padding)
            end = min(len(lines), start - 1 + length + padding)
            included.update(range(begin, end))

        chunks: list[str] = []
        prev = -2
        for idx in sorted(included):
            if idx - prev > 1 and chunks:
                chunks.append(f"\n... (lines {prev + 2}-{idx} omitted) ...\n")
            chunks.append(f"{idx + 1}: {lines[idx]}")
            prev = idx

        return "\n".join(chunks[: self.max_lines])
