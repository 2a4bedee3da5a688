"""Pytest configuration and shared fixtures."""

import asyncio
import json
from collections.abc import Callable
from pathlib import Path

import pytest

from multi_review.shared.config import AppConfig, ReviewConfig
from multi_review.shared.llm import ReviewerClient, ReviewSession
from multi_review.shared.models import FileUnit

# ============================================================
# 응답 헬퍼
# ============================================================


def issue(title: str, severity: str = "warning", **extra) -> dict:
    """리뷰 응답 JSON의 이슈 하나."""
    return {"title": title, "severity": severity, "description": extra.pop("description", title), **extra}


def review_json(issues: list[dict] | None = None, summary: str = "Looks fine.") -> str:
    """단일 파일 리뷰 응답 텍스트."""
    return json.dumps({"issues": issues or [], "summary": summary})


def batch_json(files: dict[str, list[dict]], summary: str = "ok") -> str:
    """배치 리뷰 응답 텍스트."""
    return json.dumps(
        {
            "fileReviews": [
                {"filePath": path, "issues": issues, "summary": f"{summary} {path}"}
                for path, issues in files.items()
            ]
        }
    )


def make_file(path: str, size: int = 40, **kwargs) -> FileUnit:
    """추정 토큰 수가 size인 FileUnit (4문자 = 1토큰)."""
    return FileUnit(path=path, diff="x" * (size * 4), additions=1, **kwargs)


# ============================================================
# 가짜 리뷰어 클라이언트
# ============================================================


Responder = Callable[[str, str, str], str]


class FakeSession(ReviewSession):
    """FakeReviewerClient가 만드는 세션."""

    def __init__(self, client: "FakeReviewerClient", model: str, system_prompt: str):
        self.client = client
        self.model = model
        self.system_prompt = system_prompt
        self.destroyed = False

    async def send_and_wait(self, prompt: str, timeout: float) -> str:
        return await self.client.respond(self.model, self.system_prompt, prompt)

    async def destroy(self) -> None:
        self.destroyed = True
        self.client.destroyed_sessions += 1


class FakeReviewerClient(ReviewerClient):
    """응답을 미리 정해 둔 리뷰어 클라이언트.

    responses 큐가 있으면 순서대로 사용하고 (Exception이면 raise),
    없으면 responder(model, system_prompt, prompt)를 호출합니다.
    """

    def __init__(
        self,
        responses: list[str | Exception] | None = None,
        responder: Responder | None = None,
        delay: float = 0,
    ) -> None:
        self.responses = list(responses or [])
        self.responder = responder
        self.delay = delay
        self.prompts: list[str] = []
        self.system_prompts: list[str] = []
        self.created_sessions = 0
        self.destroyed_sessions = 0
        self.closed = False
        self.in_flight = 0
        self.max_in_flight = 0

    async def create_session(self, model: str, system_prompt: str) -> ReviewSession:
        self.created_sessions += 1
        return FakeSession(self, model, system_prompt)

    async def respond(self, model: str, system_prompt: str, prompt: str) -> str:
        self.prompts.append(prompt)
        self.system_prompts.append(system_prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if self.responses:
                item = self.responses.pop(0)
            elif self.responder is not None:
                item = self.responder(model, system_prompt, prompt)
            else:
                item = review_json()
            if isinstance(item, Exception):
                raise item
            return item
        finally:
            self.in_flight -= 1

    async def close(self) -> None:
        self.closed = True

    @property
    def call_count(self) -> int:
        return len(self.prompts)


def files_in_prompt(prompt: str) -> list[str]:
    """프롬프트의 "### File:" 헤더에서 파일 경로 추출."""
    return [
        line.split("### File:", 1)[1].strip()
        for line in prompt.splitlines()
        if line.startswith("### File:")
    ]


# ============================================================
# Fixtures
# ============================================================


async def no_sleep(seconds: float) -> None:
    """백오프 대기 없이 진행."""
    return None


@pytest.fixture
def recorded_sleep():
    """대기 시간을 기록하는 sleep 대체 함수."""
    delays: list[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays
    return sleep


@pytest.fixture
def fake_client() -> FakeReviewerClient:
    return FakeReviewerClient()


@pytest.fixture
def app_config() -> AppConfig:
    """테스트용 설정 (모델 2 × 관점 1, 재시도 대기 없음)."""
    return AppConfig(
        review=ReviewConfig(
            models=["model-a", "model-b"],
            perspectives=["logic"],
            concurrency=2,
            timeout_seconds=5,
            max_retries=2,
            retry_delay_seconds=0.01,
        )
    )


@pytest.fixture
def sample_repo_path(tmp_path: Path) -> Path:
    """샘플 작업 트리."""
    repo_path = tmp_path / "sample_repo"
    repo_path.mkdir()

    (repo_path / "main.py").write_text("print('hello')\n")
    (repo_path / "utils.py").write_text("def helper(): pass\n")

    return repo_path


@pytest.fixture
def sample_config() -> dict:
    """샘플 설정 딕셔너리."""
    return {
        "llm": {
            "provider_map": {"my-model": "anthropic"},
            "max_tokens": 4096,
            "temperature": 0.3,
        },
        "review": {
            "models": ["gpt-4o", "claude-3-5-sonnet-latest"],
            "perspectives": ["logic", "security"],
            "concurrency": 3,
            "max_retries": 1,
        },
        "output": {
            "default_format": "console",
            "color": True,
        },
    }
