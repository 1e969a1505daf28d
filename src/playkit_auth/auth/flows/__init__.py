"""Interactive login flows

Headless Code Flow: 이메일/전화번호 + 6자리 인증 코드.
Popup OAuth Flow: 팝업 + PKCE, 결과는 창 간 메시지로 수신.
두 플로우는 서로 독립적이며 AuthManager가 하나만 선택해 실행한다.
"""

from playkit_auth.auth.flows.headless_code import CodeInput, HeadlessCodeFlow
from playkit_auth.auth.flows.popup_oauth import (
    CALLBACK_MESSAGE_TYPE,
    REDIRECT_URI,
    GameInfo,
    PKCEChallenge,
    PopupOAuthFlow,
    derive_code_challenge,
    generate_pkce_challenge,
    generate_state,
    origin_of,
)

__all__ = [
    # Headless code flow
    "HeadlessCodeFlow",
    "CodeInput",
    # Popup OAuth
    "PopupOAuthFlow",
    "GameInfo",
    "PKCEChallenge",
    "generate_pkce_challenge",
    "generate_state",
    "derive_code_challenge",
    "origin_of",
    "REDIRECT_URI",
    "CALLBACK_MESSAGE_TYPE",
]
