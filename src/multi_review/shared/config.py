"""Configuration management - YAML 설정 로더 및 스키마."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_MODELS = ["gpt-4o", "claude-3-5-sonnet-latest"]
DEFAULT_PERSPECTIVES = ["logic", "security", "design"]

CONFIG_FILE_NAMES = (".multi-review.yaml", ".multi-review.yml")


@dataclass
class LLMConfig:
    """LLM 설정."""

    # 모델명 -> 제공자 ("openai" | "anthropic") 강제 지정
    provider_map: dict[str, str] = field(default_factory=dict)
    max_tokens: int = 4096
    temperature: float = 0.3


@dataclass
class ReviewConfig:
    """리뷰 실행 설정."""

    models: list[str] = field(default_factory=lambda: list(DEFAULT_MODELS))
    perspectives: list[str] = field(
        default_factory=lambda: list(DEFAULT_PERSPECTIVES)
    )
    token_budget: int = 80_000
    max_files_per_batch: int = 15
    concurrency: int = 4
    timeout_seconds: float = 600
    max_retries: int = 2
    retry_delay_seconds: float = 2.0
    context_lines: int = 300
    merge_strategy: str = "naive"  # "naive" | "ai"
    merge_model: str | None = None

    @property
    def total_reviewers(self) -> int:
        """파일 하나를 리뷰해야 하는 리뷰어 수 (모델 × 관점)."""
        return len(self.models) * len(self.perspectives)

    @property
    def resolved_merge_model(self) -> str:
        """AI 병합에 사용할 모델. 지정이 없으면 첫 번째 리뷰 모델."""
        return self.merge_model or self.models[0]


@dataclass
class OutputConfig:
    """출력 설정."""

    default_format: str = "console"
    color: bool = True


@dataclass
class AppConfig:
    """애플리케이션 전체 설정."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


def _dict_to_config(data: dict[str, Any]) -> AppConfig:
    """딕셔너리를 AppConfig로 변환.

    Raises:
        ValueError: 알 수 없는 키가 있는 경우
    """
    try:
        return AppConfig(
            llm=LLMConfig(**data.get("llm", {})),
            review=ReviewConfig(**data.get("review", {})),
            output=OutputConfig(**data.get("output", {})),
        )
    except TypeError as e:
        raise ValueError(f"설정 파일 형식이 올바르지 않습니다: {e}") from e


def parse_model_list(raw: str) -> list[str]:
    """쉼표로 구분된 모델 목록 파싱.

    Raises:
        ValueError: 유효한 모델명이 하나도 없는 경우
    """
    models = [m.strip() for m in raw.split(",") if m.strip()]
    if not models:
        raise ValueError("모델이 지정되지 않았습니다. 쉼표로 구분된 모델명을 입력하세요.")
    return models


def _apply_env_overrides(config: AppConfig) -> AppConfig:
    """환경변수 설정 반영 (파일 설정보다 우선)."""
    raw_models = os.environ.get("MULTI_REVIEW_MODELS")
    if raw_models is not None:
        config.review.models = parse_model_list(raw_models)

    merge_model = os.environ.get("MULTI_REVIEW_MERGE_MODEL")
    if merge_model:
        config.review.merge_model = merge_model

    raw_timeout = os.environ.get("MULTI_REVIEW_TIMEOUT")
    if raw_timeout:
        try:
            config.review.timeout_seconds = float(raw_timeout)
        except ValueError:
            # 숫자가 아니면 무시하고 기존 값 유지
            pass

    return config


def _search_paths(config_path: Path | None = None) -> list[Path | None]:
    return [
        config_path,
        *(Path.cwd() / name for name in CONFIG_FILE_NAMES),
        get_global_config_path(),
    ]


def load_config(config_path: Path | None = None) -> AppConfig:
    """설정 파일 로드.

    탐색 순서: 인자로 받은 경로 → ./.multi-review.yaml → ./.multi-review.yml
    → ~/.config/multi-review/config.yaml. 파일이 없으면 기본값을 사용하고,
    마지막으로 환경변수(MULTI_REVIEW_*)를 덮어씁니다.

    Args:
        config_path: 설정 파일 경로. None이면 기본 경로 탐색.

    Returns:
        AppConfig 인스턴스
    """
    path = get_config_path(config_path)
    if path is not None:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return _apply_env_overrides(_dict_to_config(data))

    # 설정 파일 없으면 기본값 사용
    return _apply_env_overrides(AppConfig())


def get_config_path(config_path: Path | None = None) -> Path | None:
    """load_config가 읽을 설정 파일 경로 반환 (없으면 None)."""
    for path in _search_paths(config_path):
        if path and path.exists():
            return path

    return None


def get_global_config_path() -> Path:
    """전역 설정 파일 경로 반환."""
    return Path.home() / ".config" / "multi-review" / "config.yaml"
