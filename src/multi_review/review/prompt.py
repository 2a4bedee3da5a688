"""리뷰 호출용 프롬프트 생성."""

import json

from multi_review.prompts import load_prompt
from multi_review.review.perspectives import get_perspective
from multi_review.shared.models import FileReviewRecord, FileUnit

NO_CONTEXT_MESSAGE = "No additional file context provided."


class PromptBuilder:
    """단일 파일 / 배치 / 병합 프롬프트를 템플릿으로 생성.

    Args:
        changed_files: 이번 변경에 포함된 전체 파일 경로 (교차 참조용)
    """

    def __init__(self, changed_files: list[str] | None = None) -> None:
        self.changed_files = list(changed_files or [])

    def system_prompt(self, perspective: str, batch: bool = False) -> str:
        """관점 지침이 포함된 시스템 프롬프트."""
        name = "review/batch_system" if batch else "review/system"
        return load_prompt(
            name,
            perspective_instructions=get_perspective(perspective).instructions(),
        )

    def file_message(self, unit: FileUnit) -> str:
        """단일 파일 리뷰 메시지."""
        return load_prompt(
            "review/file",
            path=unit.path,
            diff=unit.diff,
            context=unit.context or NO_CONTEXT_MESSAGE,
            changed_files=self._other_files([unit.path]),
        )

    def batch_message(self, units: list[FileUnit]) -> str:
        """여러 파일을 한 번에 리뷰하는 메시지."""
        sections = [
            load_prompt(
                "review/batch_file",
                path=unit.path,
                diff=unit.diff,
                context=unit.context or NO_CONTEXT_MESSAGE,
            )
            for unit in units
        ]
        return load_prompt(
            "review/batch",
            file_count=len(units),
            files="\n\n".join(sections),
            changed_files=self._other_files([u.path for u in units]),
        )

    def merge_system_prompt(self) -> str:
        return load_prompt("review/merge_system")

    def merge_message(
        self,
        file_path: str,
        records: list[FileReviewRecord],
        expected_reviewers: int,
    ) -> str:
        """AI 병합용 메시지. 리뷰마다 모델과 관점을 표시."""
        blocks = []
        for record in records:
            payload = {
                "issues": [
                    {
                        "title": issue.title,
                        "severity": issue.severity.value,
                        "file": issue.file,
                        "line": issue.line,
                        "description": issue.description,
                        "suggestion": issue.suggestion,
                    }
                    for issue in record.issues
                ],
                "summary": record.summary,
            }
            blocks.append(
                f"=== Review from {record.model} ({record.perspective}) ===\n"
                + json.dumps(payload, ensure_ascii=False, indent=2)
            )

        return load_prompt(
            "review/merge",
            path=file_path,
            reviewer_count=len(records),
            expected_reviewers=expected_reviewers,
            reviews="\n\n".join(blocks),
        )

    def _other_files(self, exclude: list[str]) -> str:
        others = [f"- {p}" for p in self.changed_files if p not in exclude]
        return "\n".join(others) if others else "(none)"
