"""Git diff 파서 모듈."""

import re

from multi_review.shared.models import FileUnit


class DiffParser:
    """Git diff 문자열을 파일 단위(FileUnit) 목록으로 변환하는 파서."""

    # Git diff 헤더 패턴
    _FILE_HEADER_PATTERN = re.compile(r"^diff --git a/(.*) b/(.*)$", re.MULTILINE)
    _NEW_FILE_PATTERN = re.compile(r"^new file mode", re.MULTILINE)
    _DELETED_FILE_PATTERN = re.compile(r"^deleted file mode", re.MULTILINE)
    _RENAME_TO_PATTERN = re.compile(r"^rename to (.*)$", re.MULTILINE)
    _BINARY_PATTERN = re.compile(r"^Binary files .* differ$", re.MULTILINE)

    # Hunk 헤더 패턴: @@ -old_start,old_count +new_start,new_count @@ context
    HUNK_HEADER_PATTERN = re.compile(
        r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$", re.MULTILINE
    )

    def parse(self, diff_text: str) -> list[FileUnit]:
        """
        Git diff 텍스트를 파싱하여 FileUnit 목록 반환.

        Args:
            diff_text: git diff 명령의 출력 문자열

        Returns:
            diff에 등장한 순서대로의 FileUnit 목록. 같은 경로가
            여러 번 나오면 처음 것만 사용.
        """
        if not diff_text or not diff_text.strip():
            return []

        units: list[FileUnit] = []
        seen: set[str] = set()
        for segment in self._split_into_file_diffs(diff_text):
            unit = self._parse_file_diff(segment)
            if unit is None or unit.path in seen:
                continue
            seen.add(unit.path)
            units.append(unit)

        return units

    def _split_into_file_diffs(self, diff_text: str) -> list[str]:
        """Diff 텍스트를 파일별로 분리."""
        # diff --git 으로 시작하는 부분을 기준으로 분리
        parts = re.split(r"(?=^diff --git )", diff_text, flags=re.MULTILINE)
        return [part.strip() for part in parts if part.strip().startswith("diff --git")]

    def _parse_file_diff(self, file_diff_text: str) -> FileUnit | None:
        """개별 파일 diff를 파싱."""
        header_match = self._FILE_HEADER_PATTERN.search(file_diff_text)
        if not header_match:
            return None

        path = header_match.group(2)
        rename_to = self._RENAME_TO_PATTERN.search(file_diff_text)
        if rename_to:
            path = rename_to.group(1)

        # 바이너리 파일은 변경 라인을 세지 않음
        if self._BINARY_PATTERN.search(file_diff_text):
            return FileUnit(path=path, diff=file_diff_text, is_binary=True)

        additions, deletions = self._count_changes(file_diff_text)

        return FileUnit(
            path=path,
            diff=file_diff_text,
            additions=additions,
            deletions=deletions,
            is_new=bool(self._NEW_FILE_PATTERN.search(file_diff_text)),
            is_deleted=bool(self._DELETED_FILE_PATTERN.search(file_diff_text)),
        )

    def _count_changes(self, file_diff_text: str) -> tuple[int, int]:
        """Hunk 영역에서 추가/삭제 라인 수 계산."""
        additions = 0
        deletions = 0
        in_hunk = False

        for line in file_diff_text.split("\n"):
            if line.startswith("@@"):
                in_hunk = True
                continue
            if not in_hunk:
                continue
            if line.startswith("+") and not line.startswith("+++"):
                additions += 1
            elif line.startswith("-") and not line.startswith("---"):
                deletions += 1

        return additions, deletions


def hunk_ranges(diff_text: str) -> list[tuple[int, int]]:
    """diff의 hunk 헤더에서 새 파일 기준 (시작 라인, 길이) 목록 추출."""
    ranges = []
    for match in DiffParser.HUNK_HEADER_PATTERN.finditer(diff_text):
        start = int(match.group(3))
        length = int(match.group(4)) if match.group(4) else 1
        ranges.append((start, length))
    return ranges
