"""Review module - 멀티 모델 코드 리뷰 오케스트레이션."""

from multi_review.review.batcher import create_batches, estimate_tokens
from multi_review.review.diff_parser import DiffParser
from multi_review.review.merger import merge_file_reviews
from multi_review.review.runner import (
    ReviewCallbacks,
    ReviewRunner,
    run_review,
    run_review_sync,
)
from multi_review.review.tasks import generate_tasks

__all__ = [
    "DiffParser",
    "ReviewCallbacks",
    "ReviewRunner",
    "create_batches",
    "estimate_tokens",
    "generate_tasks",
    "merge_file_reviews",
    "run_review",
    "run_review_sync",
]
