"""배치 분할 테스트."""

from conftest import make_file

from multi_review.review.batcher import (
    DEFAULT_TOKEN_BUDGET,
    MAX_FILES_PER_BATCH,
    create_batches,
    estimate_tokens,
)
from multi_review.shared.models import FileUnit


class TestEstimateTokens:
    """토큰 수 추정 테스트."""

    def test_diff_only(self):
        """diff 길이 / 4 (올림)."""
        unit = FileUnit(path="a.py", diff="x" * 10)
        assert estimate_tokens(unit) == 3

    def test_includes_context(self):
        """컨텍스트 길이도 포함."""
        unit = FileUnit(path="a.py", diff="x" * 8, context="y" * 8)
        assert estimate_tokens(unit) == 4

    def test_empty(self):
        assert estimate_tokens(FileUnit(path="a.py", diff="")) == 0


class TestCreateBatches:
    """First-Fit-Decreasing 배치 테스트."""

    def test_empty_input(self):
        assert create_batches([]) == []

    def test_defaults(self):
        assert DEFAULT_TOKEN_BUDGET == 80_000
        assert MAX_FILES_PER_BATCH == 15

    def test_ffd_example(self):
        """[40, 30, 60, 40], 예산 100 → {60, 40}, {40, 30}."""
        files = [
            make_file("a.py", 40),
            make_file("b.py", 30),
            make_file("c.py", 60),
            make_file("d.py", 40),
        ]

        batches = create_batches(files, token_budget=100)

        assert len(batches) == 2
        assert batches[0].paths == ["c.py", "a.py"]
        assert batches[0].estimated_tokens == 100
        assert batches[1].paths == ["d.py", "b.py"]
        assert batches[1].estimated_tokens == 70

    def test_ties_keep_input_order(self):
        """크기가 같으면 입력 순서 유지."""
        files = [make_file(f"f{i}.py", 10) for i in range(5)]

        batches = create_batches(files, token_budget=1000)

        assert batches[0].paths == [f"f{i}.py" for i in range(5)]

    def test_oversized_file_alone(self):
        """예산보다 큰 파일은 혼자 배치."""
        files = [make_file("small.py", 10), make_file("huge.py", 500)]

        batches = create_batches(files, token_budget=100)

        assert [b.paths for b in batches] == [["huge.py"], ["small.py"]]
        assert batches[0].estimated_tokens == 500

    def test_max_files_per_batch(self):
        """배치당 파일 수 제한."""
        files = [make_file(f"f{i}.py", 1) for i in range(7)]

        batches = create_batches(files, token_budget=1000, max_files_per_batch=3)

        assert [len(b.files) for b in batches] == [3, 3, 1]

    def test_partition_and_limits(self):
        """모든 파일이 정확히 한 번씩 포함되고 제한을 지킴."""
        sizes = [5, 90, 33, 33, 70, 1, 12, 250, 48, 48, 17, 64]
        files = [make_file(f"f{i}.py", size) for i, size in enumerate(sizes)]

        batches = create_batches(files, token_budget=100, max_files_per_batch=4)

        paths = [p for b in batches for p in b.paths]
        assert sorted(paths) == sorted(f.path for f in files)
        assert len(paths) == len(set(paths))
        for batch in batches:
            assert len(batch.files) <= 4
            assert batch.estimated_tokens <= 100 or len(batch.files) == 1
            assert batch.estimated_tokens == sum(estimate_tokens(f) for f in batch.files)

    def test_deterministic(self):
        """같은 입력이면 같은 결과."""
        files = [make_file(f"f{i}.py", (i * 37) % 90 + 1) for i in range(20)]

        first = create_batches(files, token_budget=120, max_files_per_batch=5)
        second = create_batches(files, token_budget=120, max_files_per_batch=5)

        assert [b.paths for b in first] == [b.paths for b in second]
