"""리뷰 엔진 예외 계층.

리뷰어 호출 실패는 재시도 가능 여부(``retryable``)로 분류됩니다.

- TransientCallError: 타임아웃, 네트워크, 서버(5xx) 오류. 재시도하면 성공할 수 있음.
- PermanentCallError: 빈 응답, 파싱 불가 응답, 스키마 불일치. 재시도해도 같은 결과.
- ExecutorConfigurationError: 설정/프로그래밍 결함. 실행 전체를 중단.
"""


class MultiReviewError(Exception):
    """multi-review 예외의 베이스 클래스."""

    pass


class CallError(MultiReviewError):
    """리뷰어 호출 한 번의 실패."""

    retryable: bool = False


class TransientCallError(CallError):
    """일시적 실패 (네트워크, 서버 오류 등)."""

    retryable = True


class CallTimeoutError(TransientCallError):
    """호출 타임아웃."""

    pass


class PermanentCallError(CallError):
    """재시도해도 반복될 실패."""

    retryable = False


class EmptyResponseError(PermanentCallError):
    """모델이 빈 응답을 반환."""

    pass


class MalformedResponseError(PermanentCallError):
    """응답에서 JSON을 추출할 수 없음."""

    pass


class SchemaValidationError(PermanentCallError):
    """응답 JSON이 기대한 구조와 다름."""

    pass


class ExecutorConfigurationError(MultiReviewError):
    """실행기 설정 오류 (예: 등록되지 않은 모델).

    일시적인 상황이 아니므로 재시도하지 않고 실행 전체를 중단합니다.
    """

    pass
