"""토큰 예산 기반 파일 배치 분할 (First-Fit-Decreasing)."""

import math

from multi_review.shared.models import Batch, FileUnit

# 배치당 기본 토큰 예산 (품질과 컨텍스트 길이의 절충)
DEFAULT_TOKEN_BUDGET = 80_000

# 배치당 최대 파일 수 (응답 JSON이 너무 커지는 것을 방지)
MAX_FILES_PER_BATCH = 15

# 토큰당 문자 수 (보수적 추정치)
CHARS_PER_TOKEN = 4


def estimate_tokens(unit: FileUnit) -> int:
    """파일의 diff + 컨텍스트 토큰 수 추정 (약 4문자당 1토큰)."""
    context_len = len(unit.context) if unit.context else 0
    return math.ceil((len(unit.diff) + context_len) / CHARS_PER_TOKEN)


def create_batches(
    files: list[FileUnit],
    token_budget: int = DEFAULT_TOKEN_BUDGET,
    max_files_per_batch: int = MAX_FILES_PER_BATCH,
) -> list[Batch]:
    """First-Fit-Decreasing 빈 패킹으로 파일을 배치로 분할.

    1. 추정 토큰 수 내림차순 정렬 (같으면 입력 순서 유지)
    2. 토큰 예산과 파일 수 모두 여유가 있는 첫 배치에 배치
    3. 들어갈 배치가 없으면 새 배치 생성

    예산보다 큰 파일은 빈 배치에만 들어가므로 항상 혼자 배치됩니다.

    Args:
        files: 배치할 파일 목록
        token_budget: 배치당 토큰 예산
        max_files_per_batch: 배치당 최대 파일 수

    Returns:
        입력 파일을 정확히 한 번씩 포함하는 Batch 목록
    """
    if not files:
        return []

    max_files = max(1, max_files_per_batch)

    # sorted()는 안정 정렬이므로 동률이면 입력 순서가 유지됨
    annotated = sorted(
        ((unit, estimate_tokens(unit)) for unit in files),
        key=lambda item: item[1],
        reverse=True,
    )

    batches: list[Batch] = []
    for unit, tokens in annotated:
        for batch in batches:
            if (
                len(batch.files) < max_files
                and batch.estimated_tokens + tokens <= token_budget
            ):
                batch.files.append(unit)
                batch.estimated_tokens += tokens
                break
        else:
            batches.append(Batch(files=[unit], estimated_tokens=tokens))

    return batches
