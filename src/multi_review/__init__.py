"""multi-review: 여러 AI 모델 × 리뷰 관점으로 코드 변경을 리뷰하고 합의를 추적하는 도구."""

__version__ = "0.3.0"
