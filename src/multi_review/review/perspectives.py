"""리뷰 관점 레지스트리."""

from dataclasses import dataclass

from multi_review.prompts import load_prompt


@dataclass(frozen=True)
class Perspective:
    """리뷰어의 초점을 좁히는 관점 (예: 보안, 성능)."""

    name: str  # 설정/CLI에서 쓰는 이름 (예: "security")
    label: str  # 사람이 읽는 이름
    prompt_name: str  # 지침 템플릿 (예: "perspectives/security")

    def instructions(self) -> str:
        """관점별 리뷰 지침 텍스트."""
        return load_prompt(self.prompt_name)


PERSPECTIVE_REGISTRY: dict[str, Perspective] = {
    p.name: p
    for p in (
        Perspective("logic", "Logic & Correctness", "perspectives/logic"),
        Perspective("security", "Security", "perspectives/security"),
        Perspective("design", "Design & Architecture", "perspectives/design"),
        Perspective(
            "performance", "Performance & Scalability", "perspectives/performance"
        ),
        Perspective("ux", "UI/UX & Accessibility", "perspectives/ux"),
        Perspective("testing", "Testing", "perspectives/testing"),
    )
}


def get_perspective(name: str) -> Perspective:
    """이름으로 관점 조회.

    Raises:
        ValueError: 알 수 없는 관점 이름
    """
    perspective = PERSPECTIVE_REGISTRY.get(name)
    if perspective is None:
        available = ", ".join(PERSPECTIVE_REGISTRY)
        raise ValueError(f"알 수 없는 관점: {name}. 사용 가능: {available}")
    return perspective


def get_available_perspectives() -> list[str]:
    """사용 가능한 관점 이름 목록."""
    return list(PERSPECTIVE_REGISTRY)


def validate_perspectives(names: list[str]) -> list[str]:
    """관점 목록 검증. 중복은 처음 순서대로 한 번만 남김.

    Raises:
        ValueError: 비어 있거나 알 수 없는 관점이 포함된 경우
    """
    unique = list(dict.fromkeys(n.strip() for n in names if n.strip()))
    if not unique:
        raise ValueError("관점이 지정되지 않았습니다.")
    for name in unique:
        get_perspective(name)
    return unique
