"""GitClient 테스트."""

import subprocess
from pathlib import Path

import pytest
from conftest import FakeReviewerClient

from multi_review.review.runner import ReviewRunner
from multi_review.shared.git import GitClient, GitError, InvalidRepositoryError


def _git(repo_path: Path, *args: str) -> None:
    subprocess.run(["git", *args], cwd=repo_path, check=True, capture_output=True)


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """테스트용 Git 저장소를 생성합니다."""
    repo_path = tmp_path / "test_repo"
    repo_path.mkdir()

    _git(repo_path, "init")
    _git(repo_path, "config", "user.email", "test@example.com")
    _git(repo_path, "config", "user.name", "Test User")
    # GPG 서명 비활성화 (테스트 환경용)
    _git(repo_path, "config", "commit.gpgsign", "false")

    # 샘플 파일 생성
    (repo_path / "main.py").write_text("print('hello')\n")
    (repo_path / "pkg").mkdir()
    (repo_path / "pkg" / "utils.py").write_text("def helper(): pass\n")

    _git(repo_path, "add", ".")
    _git(repo_path, "commit", "-m", "Initial commit")

    return repo_path


@pytest.fixture
def pr_repo(git_repo: Path, tmp_path: Path) -> Path:
    """origin 원격에 refs/pull/7/head가 있는 저장소를 반환합니다."""
    origin = tmp_path / "origin.git"
    _git(tmp_path, "init", "--bare", str(origin))
    _git(git_repo, "remote", "add", "origin", str(origin))

    _git(git_repo, "checkout", "-b", "feature")
    (git_repo / "pkg" / "feature.py").write_text("def feature():\n    return 7\n")
    _git(git_repo, "add", ".")
    _git(git_repo, "commit", "-m", "Add feature")
    _git(git_repo, "push", "origin", "HEAD:refs/pull/7/head")
    _git(git_repo, "checkout", "-")

    return git_repo


@pytest.fixture
def git_client(git_repo: Path) -> GitClient:
    """테스트용 GitClient 인스턴스를 반환합니다."""
    return GitClient(git_repo)


class TestGitClientInit:
    """GitClient 초기화 테스트."""

    def test_init_with_valid_repo(self, git_repo: Path) -> None:
        """유효한 저장소로 초기화."""
        client = GitClient(git_repo)
        assert client.root.resolve() == git_repo.resolve()

    def test_init_with_string_path(self, git_repo: Path) -> None:
        """문자열 경로로 초기화."""
        client = GitClient(str(git_repo))
        assert client.root.resolve() == git_repo.resolve()

    def test_init_from_subdirectory(self, git_repo: Path) -> None:
        """하위 디렉토리에서도 저장소 최상위를 찾음."""
        client = GitClient(git_repo / "pkg")
        assert client.root.resolve() == git_repo.resolve()

    def test_init_with_invalid_repo(self, tmp_path: Path) -> None:
        """유효하지 않은 저장소로 초기화 시 예외."""
        invalid_path = tmp_path / "not_a_repo"
        invalid_path.mkdir()

        with pytest.raises(InvalidRepositoryError):
            GitClient(invalid_path)

    def test_init_with_missing_path(self, tmp_path: Path) -> None:
        with pytest.raises(InvalidRepositoryError):
            GitClient(tmp_path / "missing")


class TestGetDiff:
    """get_diff 메서드 테스트."""

    def test_diff_no_changes(self, git_client: GitClient) -> None:
        """변경사항 없을 때 빈 diff."""
        assert git_client.get_diff() == ""

    def test_diff_unstaged_changes(self, git_client: GitClient, git_repo: Path) -> None:
        """unstaged 변경사항 diff."""
        (git_repo / "main.py").write_text("print('changed')\n")

        diff = git_client.get_diff(staged=False)
        assert "changed" in diff
        assert "main.py" in diff
        assert git_client.get_diff(staged=True) == ""

    def test_diff_staged_changes(self, git_client: GitClient, git_repo: Path) -> None:
        """staged 변경사항 diff."""
        (git_repo / "main.py").write_text("print('staged')\n")
        _git(git_repo, "add", "main.py")

        diff = git_client.get_diff(staged=True)
        assert "staged" in diff

    def test_diff_commit_range(self, git_client: GitClient, git_repo: Path) -> None:
        """커밋 범위 diff."""
        (git_repo / "new_file.py").write_text("new content\n")
        _git(git_repo, "add", "new_file.py")
        _git(git_repo, "commit", "-m", "Add new file")

        diff = git_client.get_diff(commit_range="HEAD~1..HEAD")
        assert "new_file.py" in diff

    def test_invalid_commit_range(self, git_client: GitClient) -> None:
        with pytest.raises(GitError):
            git_client.get_diff(commit_range="no-such-ref..HEAD")


class TestGetPrDiff:
    """get_pr_diff 메서드 테스트."""

    def test_pr_diff(self, pr_repo: Path) -> None:
        diff = GitClient(pr_repo).get_pr_diff(7)

        assert "pkg/feature.py" in diff
        assert "return 7" in diff
        # 현재 브랜치는 PR 커밋을 포함하지 않음
        assert not (pr_repo / "pkg" / "feature.py").exists()

    def test_missing_pr(self, pr_repo: Path) -> None:
        with pytest.raises(GitError):
            GitClient(pr_repo).get_pr_diff(99)

    def test_missing_remote(self, git_client: GitClient) -> None:
        with pytest.raises(GitError):
            git_client.get_pr_diff(7)


class TestReviewGitChanges:
    """ReviewRunner.review()가 작업 트리 변경을 리뷰하는지 확인."""

    @pytest.mark.asyncio
    async def test_review_working_tree(self, git_repo: Path, app_config) -> None:
        (git_repo / "pkg" / "utils.py").write_text("def helper():\n    return 42\n")
        client = FakeReviewerClient()

        runner = ReviewRunner(config=app_config, client_factory=lambda model: client)
        report = await runner.review(git_repo / "pkg")

        assert [r.file_path for r in report.file_reviews] == ["pkg/utils.py"]
        # 저장소 최상위 기준으로 컨텍스트를 읽음
        assert "return 42" in client.prompts[0]

    @pytest.mark.asyncio
    async def test_review_pull_request(self, pr_repo: Path, app_config) -> None:
        client = FakeReviewerClient()

        runner = ReviewRunner(config=app_config, client_factory=lambda model: client)
        report = await runner.review(pr_repo, pr=7)

        assert [r.file_path for r in report.file_reviews] == ["pkg/feature.py"]
