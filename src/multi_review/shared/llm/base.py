"""리뷰어 클라이언트 추상 베이스 클래스."""

from abc import ABC, abstractmethod


class ReviewSession(ABC):
    """시스템 프롬프트가 고정된 단일 리뷰 세션.

    세션은 호출 한 번(재시도 포함 시 시도 한 번)에만 사용하고
    끝나면 destroy()로 정리합니다.
    """

    @abstractmethod
    async def send_and_wait(self, prompt: str, timeout: float) -> str:
        """프롬프트를 보내고 응답 텍스트를 기다림.

        Args:
            prompt: 사용자 메시지
            timeout: 호출 타임아웃 (초)

        Returns:
            응답 텍스트 (빈 문자열일 수 있음)

        Raises:
            TransientCallError: 타임아웃, 네트워크, 서버 오류
            PermanentCallError: 재시도해도 반복될 오류
        """
        ...

    async def destroy(self) -> None:
        """세션 자원 정리."""
        return None


class ReviewerClient(ABC):
    """모델 하나에 대한 재사용 가능한 클라이언트 핸들.

    여러 작업이 동시에 같은 클라이언트로 세션을 만들 수 있어야 합니다.
    """

    @abstractmethod
    async def create_session(self, model: str, system_prompt: str) -> ReviewSession:
        """새 리뷰 세션 생성.

        Args:
            model: 모델명
            system_prompt: 시스템 프롬프트

        Returns:
            ReviewSession 인스턴스
        """
        ...

    async def close(self) -> None:
        """클라이언트 연결 종료."""
        return None
