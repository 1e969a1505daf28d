"""Custom authentication exceptions.

인증 관련 예외 클래스 정의.
모든 예외는 ``code`` (에러 종류), ``status_code`` (HTTP 상태),
``error_code`` (서버가 내려준 코드)를 가진다.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """에러 종류 태그."""

    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    # protocol validation
    STATE_MISMATCH = "STATE_MISMATCH"
    NO_CODE = "NO_CODE"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    NO_SESSION = "NO_SESSION"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    # remote rejection
    SEND_CODE_ERROR = "SEND_CODE_ERROR"
    INVALID_CODE = "INVALID_CODE"
    VERIFICATION_FAILED = "VERIFICATION_FAILED"
    TOKEN_EXCHANGE_FAILED = "TOKEN_EXCHANGE_FAILED"
    GAME_INFO_ERROR = "GAME_INFO_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    JWT_EXCHANGE_FAILED = "JWT_EXCHANGE_FAILED"
    # environment / user
    POPUP_BLOCKED = "POPUP_BLOCKED"
    USER_CANCELLED = "USER_CANCELLED"


class AuthenticationError(Exception):
    """기본 인증 예외.

    모든 인증 관련 예외의 베이스 클래스.

    Attributes:
        code: 에러 종류 (ErrorCode)
        status_code: HTTP 상태 코드 (없으면 None)
        error_code: 서버가 제공한 에러 코드 (예: 'invalid_grant')
    """

    default_code: ErrorCode | None = None

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        status_code: int | None = None,
        error_code: str | None = None,
    ):
        self.code = code or self.default_code
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({str(self)!r}, code={self.code}, "
            f"status_code={self.status_code})"
        )


class NotAuthenticatedError(AuthenticationError):
    """인증 수단 없음.

    developer token, 저장된 토큰, identity token이 모두 없고
    로그인 UI도 띄울 수 없는 환경.
    """

    default_code = ErrorCode.NOT_AUTHENTICATED


class ProtocolError(AuthenticationError):
    """프로토콜 검증 실패 (NO_SESSION, NO_CODE 등)."""

    pass


class StateMismatchError(ProtocolError):
    """콜백 state 불일치 (CSRF 가능성). 재시도하지 않는다."""

    default_code = ErrorCode.STATE_MISMATCH


class InvalidResponseError(ProtocolError):
    """서버 응답에 필수 필드가 없음."""

    default_code = ErrorCode.INVALID_RESPONSE


class ValidationError(ProtocolError):
    """클라이언트 측 입력 검증 실패 (네트워크 호출 없음)."""

    default_code = ErrorCode.VALIDATION_ERROR


class RemoteAuthError(AuthenticationError):
    """서버가 요청을 거부함."""

    pass


class SendCodeError(RemoteAuthError):
    default_code = ErrorCode.SEND_CODE_ERROR


class InvalidCodeError(RemoteAuthError):
    default_code = ErrorCode.INVALID_CODE


class VerificationFailedError(RemoteAuthError):
    default_code = ErrorCode.VERIFICATION_FAILED


class TokenExchangeError(RemoteAuthError):
    default_code = ErrorCode.TOKEN_EXCHANGE_FAILED


class GameInfoError(RemoteAuthError):
    default_code = ErrorCode.GAME_INFO_ERROR


class OAuthError(RemoteAuthError):
    """OAuth 콜백이 에러를 전달함.

    Attributes:
        error_code: OAuth 에러 코드 (예: 'access_denied')
    """

    default_code = ErrorCode.AUTH_ERROR


class ExchangeError(RemoteAuthError):
    """identity token → player token 교환 실패."""

    default_code = ErrorCode.JWT_EXCHANGE_FAILED


class PopupBlockedError(AuthenticationError):
    """팝업 창이 차단됨."""

    default_code = ErrorCode.POPUP_BLOCKED


class UserCancelledError(AuthenticationError):
    """사용자가 로그인을 취소함."""

    default_code = ErrorCode.USER_CANCELLED
