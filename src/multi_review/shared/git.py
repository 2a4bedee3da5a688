"""Git 클라이언트 모듈."""

from pathlib import Path

from git import InvalidGitRepositoryError, NoSuchPathError, Repo
from git.exc import GitCommandError


class GitError(Exception):
    """Git 관련 에러."""

    pass


class InvalidRepositoryError(GitError):
    """유효하지 않은 Git 저장소 에러."""

    pass


class GitClient:
    """Git 저장소 클라이언트."""

    def __init__(self, path: str | Path = ".") -> None:
        """Git 저장소를 엽니다.

        하위 디렉토리에서 실행해도 상위의 저장소를 찾습니다.

        Args:
            path: Git 저장소 경로. 기본값은 현재 디렉토리.

        Raises:
            InvalidRepositoryError: 유효하지 않은 Git 저장소인 경우.
        """
        self._path = Path(path).resolve()
        try:
            self._repo = Repo(self._path, search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise InvalidRepositoryError(
                f"유효하지 않은 Git 저장소입니다: {self._path}"
            ) from e

    @property
    def root(self) -> Path:
        """작업 트리 최상위 경로를 반환합니다.

        diff 경로는 이 경로 기준의 상대 경로입니다.
        """
        if self._repo.working_tree_dir is None:
            return self._path
        return Path(self._repo.working_tree_dir)

    def get_diff(self, staged: bool = False, commit_range: str | None = None) -> str:
        """Git diff를 가져옵니다.

        Args:
            staged: True이면 staged 변경사항만, False이면 unstaged 변경사항.
            commit_range: 커밋 범위 (예: "HEAD~3..HEAD", "main..feature").
                         지정하면 staged 인자는 무시됩니다.

        Returns:
            diff 문자열.

        Raises:
            GitError: Git 명령 실행 실패 시.
        """
        try:
            if commit_range:
                # 커밋 범위 diff
                return self._repo.git.diff(commit_range)
            elif staged:
                # staged 변경사항
                return self._repo.git.diff("--cached")
            else:
                # unstaged 변경사항
                return self._repo.git.diff()
        except GitCommandError as e:
            raise GitError(f"diff 가져오기 실패: {e}") from e

    def get_pr_diff(self, number: int, remote: str = "origin") -> str:
        """Pull request의 diff를 가져옵니다.

        원격의 `pull/<number>/head`를 fetch한 뒤 현재 HEAD와의 merge base
        기준으로 비교합니다 (GitHub 원격 기준).

        Args:
            number: PR 번호.
            remote: PR을 가져올 원격 이름.

        Returns:
            diff 문자열.

        Raises:
            GitError: fetch 또는 diff 실패 시.
        """
        try:
            self._repo.git.fetch(remote, f"pull/{number}/head")
            return self._repo.git.diff("HEAD...FETCH_HEAD")
        except GitCommandError as e:
            raise GitError(f"PR #{number} diff 가져오기 실패: {e}") from e
