"""Simple two-language (ko/en) translation helper."""

_STRINGS: dict[str, dict[str, str]] = {
    "page_title": {
        "ko": "달과 해 대시보드",
        "en": "Moonwatch",
    },
    "status_valid": {
        "ko": "유효한 API 키",
        "en": "Valid API Key",
    },
    "status_demo": {
        "ko": "데모 모드",
        "en": "Demo Mode",
    },
    "status_invalid": {
        "ko": "API 키 없음",
        "en": "Invalid API Key",
    },
    "key_preview_demo": {
        "ko": "샘플 데이터 사용 중",
        "en": "Using sample data",
    },
    "label_api_key": {
        "ko": "RapidAPI 키 (50자)",
        "en": "RapidAPI key (50 characters)",
    },
    "btn_save_key": {
        "ko": "키 저장",
        "en": "Save key",
    },
    "btn_demo": {
        "ko": "데모로 시작",
        "en": "Start demo",
    },
    "btn_remove_key": {
        "ko": "키와 기록 삭제",
        "en": "Remove key and history",
    },
    "btn_refresh": {
        "ko": "지금 새로고침",
        "en": "Refresh now",
    },
    "error_key_length": {
        "ko": "API 키는 50자여야 해요.",
        "en": "The API key must be 50 characters long.",
    },
    "error_key_rejected": {
        "ko": "API 키가 거부되었어요. 새 키를 입력해주세요.",
        "en": "The API key was rejected. Please enter a new one.",
    },
    "last_update": {
        "ko": "마지막 갱신: {time}",
        "en": "Last Update: {time}",
    },
    "next_update": {
        "ko": "다음 갱신: {minutes}:{seconds:02d}",
        "en": "Next Update: {minutes}:{seconds:02d}",
    },
    "section_moon": {
        "ko": "달",
        "en": "Moon",
    },
    "section_sun": {
        "ko": "해",
        "en": "Sun",
    },
    "section_events": {
        "ko": "다가오는 식",
        "en": "Upcoming Events",
    },
    "section_viewing": {
        "ko": "관측 정보",
        "en": "Viewing",
    },
    "section_changes": {
        "ko": "최근 변화",
        "en": "Recent Changes",
    },
    "section_table": {
        "ko": "기록",
        "en": "History",
    },
    "placeholder": {
        "ko": "API 키를 입력하거나 데모 모드로 시작하세요",
        "en": "Enter an API key or start the demo to begin",
    },
}


def t(key: str, lang: str) -> str:
    """Return the translated string for key in lang.

    Falls back to 'en', then to the key itself if not found.
    """
    entry = _STRINGS.get(key)
    if entry is None:
        return key
    return entry.get(lang) or entry.get("en") or key
