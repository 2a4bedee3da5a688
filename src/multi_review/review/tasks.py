"""리뷰 작업 매트릭스 생성."""

from multi_review.shared.models import Batch, ReviewTask


def generate_tasks(
    batches: list[Batch],
    models: list[str],
    perspectives: list[str],
) -> list[ReviewTask]:
    """배치 × 모델 × 관점의 모든 조합을 리뷰 작업으로 생성.

    작업 수는 len(batches) × len(models) × len(perspectives)이며
    순서는 배치 → 모델 → 관점 순입니다.
    """
    return [
        ReviewTask(batch_index=index, model=model, perspective=perspective)
        for index in range(len(batches))
        for model in models
        for perspective in perspectives
    ]


def tasks_per_file(
    batches: list[Batch], tasks: list[ReviewTask]
) -> dict[str, int]:
    """파일별로 해당 파일을 다루는 작업 수 계산."""
    counts: dict[str, int] = {}
    for task in tasks:
        for path in batches[task.batch_index].paths:
            counts[path] = counts.get(path, 0) + 1
    return counts
