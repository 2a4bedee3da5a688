"""모델 응답 텍스트를 검증된 리뷰 결과로 변환.

응답은 JSON 객체여야 하며 pydantic 스키마로 구조를 검증합니다.
실패는 모두 PermanentCallError 계열로 보고합니다 (재시도해도 같은 결과).
"""

import json
import logging
import re
from dataclasses import dataclass

from pydantic import BaseModel, Field, ValidationError

from multi_review.shared.errors import (
    EmptyResponseError,
    MalformedResponseError,
    SchemaValidationError,
)
from multi_review.shared.models import Consensus, MergedIssue, ReviewIssue, Severity

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?\s*```")
_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


# ============================================================
# 응답 스키마
# ============================================================


class IssueSchema(BaseModel):
    """리뷰 이슈 하나."""

    title: str = Field(description="Short title of the issue")
    severity: Severity
    file: str | None = Field(default=None, description="File path if applicable")
    line: int | None = Field(default=None, description="Line number if applicable")
    description: str = Field(description="Detailed description of the issue")
    suggestion: str | None = Field(default=None, description="Suggested fix")

    def to_issue(self) -> ReviewIssue:
        return ReviewIssue(
            title=self.title,
            severity=self.severity,
            description=self.description,
            file=self.file,
            line=self.line,
            suggestion=self.suggestion,
        )


class ReviewOutput(BaseModel):
    """단일 파일 리뷰 응답."""

    issues: list[IssueSchema]
    summary: str = Field(description="Brief overall summary of the code quality")


class FileReviewOutput(ReviewOutput):
    """배치 응답 안의 파일 하나."""

    filePath: str = Field(description="Path of the reviewed file")


class BatchReviewOutput(BaseModel):
    """여러 파일을 한 번에 리뷰한 응답."""

    fileReviews: list[FileReviewOutput]


class MergedIssueSchema(IssueSchema):
    """AI 병합 결과의 이슈."""

    consensus: Consensus
    models: list[str] = Field(description="Which models identified this issue")


class MergeOutput(BaseModel):
    """AI 병합 응답."""

    issues: list[MergedIssueSchema]
    summary: str = Field(description="Integrated summary across all reviews")


# ============================================================
# 파싱 결과
# ============================================================


@dataclass(frozen=True)
class ParsedReview:
    """검증이 끝난 리뷰 결과."""

    issues: tuple[ReviewIssue, ...]
    summary: str


def extract_json(text: str) -> object:
    """응답 텍스트에서 JSON 추출.

    순수 JSON, ```json 코드 블록, 텍스트 안에 포함된 {...} 객체를
    차례로 시도합니다.

    Raises:
        EmptyResponseError: 응답이 비어 있는 경우
        MalformedResponseError: JSON을 찾을 수 없는 경우
    """
    if not text or not text.strip():
        raise EmptyResponseError("모델이 빈 응답을 반환했습니다.")

    candidates = [text.strip()]
    fence = _FENCE_PATTERN.search(text)
    if fence and fence.group(1).strip():
        candidates.append(fence.group(1).strip())
    obj = _OBJECT_PATTERN.search(text)
    if obj:
        candidates.append(obj.group(0))

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue

    raise MalformedResponseError(f"응답에서 JSON을 파싱할 수 없습니다: {text[:200]}...")


def _validate(schema: type[BaseModel], text: str) -> BaseModel:
    data = extract_json(text)
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise SchemaValidationError(f"스키마 검증 실패: {e}") from e


def parse_review_response(text: str) -> ParsedReview:
    """단일 파일 리뷰 응답 파싱.

    Args:
        text: 모델 응답 텍스트

    Returns:
        ParsedReview 객체

    Raises:
        PermanentCallError: 빈 응답, JSON 파싱 실패, 스키마 불일치
    """
    output = _validate(ReviewOutput, text)
    return ParsedReview(
        issues=tuple(issue.to_issue() for issue in output.issues),
        summary=output.summary,
    )


def normalize_path(path: str) -> str:
    """모델이 돌려준 경로를 비교 가능한 형태로 정리."""
    path = path.strip()
    for prefix in ("./", "a/", "b/"):
        if path.startswith(prefix):
            return path[len(prefix) :]
    return path


def _match_path(file_path: str, expected_paths: list[str]) -> str | None:
    """응답 경로를 요청 경로에 대응.

    정확히 일치하는 경로가 우선이고, 접두사를 벗긴 경로는 요청 경로 하나에만
    대응될 때 사용합니다.
    """
    file_path = file_path.strip()
    if file_path in expected_paths:
        return file_path

    normalized = normalize_path(file_path)
    if normalized in expected_paths:
        return normalized

    candidates = [p for p in expected_paths if normalize_path(p) == normalized]
    if len(candidates) == 1:
        return candidates[0]
    if candidates:
        logger.debug(f"경로가 여러 파일에 대응되어 무시: {file_path} -> {candidates}")
    return None


def parse_batch_response(
    text: str, expected_paths: list[str]
) -> dict[str, ParsedReview]:
    """배치 리뷰 응답 파싱.

    요청하지 않은 파일은 무시하고, 같은 파일이 여러 번 나오면 처음 것만
    사용합니다. 반환값이 expected_paths 일부만 포함할 수 있습니다 (부분 성공).

    Args:
        text: 모델 응답 텍스트
        expected_paths: 배치에 포함된 파일 경로

    Returns:
        파일 경로 -> ParsedReview

    Raises:
        PermanentCallError: 빈 응답, JSON 파싱 실패, 스키마 불일치
    """
    output = _validate(BatchReviewOutput, text)

    reviews: dict[str, ParsedReview] = {}
    for file_review in output.fileReviews:
        path = _match_path(file_review.filePath, expected_paths)
        if path is None:
            logger.debug(f"요청하지 않은 파일 리뷰 무시: {file_review.filePath}")
            continue
        if path in reviews:
            continue
        reviews[path] = ParsedReview(
            issues=tuple(issue.to_issue() for issue in file_review.issues),
            summary=file_review.summary,
        )

    return reviews


def parse_merge_response(text: str) -> tuple[list[MergedIssue], str]:
    """AI 병합 응답 파싱.

    Returns:
        (병합된 이슈 목록, 통합 요약)

    Raises:
        PermanentCallError: 빈 응답, JSON 파싱 실패, 스키마 불일치
    """
    output = _validate(MergeOutput, text)
    issues = [
        MergedIssue(
            title=item.title,
            severity=item.severity,
            description=item.description,
            consensus=item.consensus,
            models=list(item.models),
            file=item.file,
            line=item.line,
            suggestion=item.suggestion,
        )
        for item in output.issues
    ]
    return issues, output.summary
