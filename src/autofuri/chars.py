from __future__ import annotations

__all__ = [
    "JAPANESE_CLASS",
    "KANA_CLASS",
    "KANJI_CLASS",
    "is_kana_char",
    "is_kana_string",
    "katakana_to_hiragana",
]

# Character classes shared by the regex builders and the per-character tests.
KANA_CLASS = "ぁ-ゟ゠-ヿㇰ-ㇿｦ-ﾟ"
KANJI_CLASS = (
    "㐀-䶿一-鿿豈-﫿"
    "\U00020000-\U0002A6DF\U0002A700-\U0002EBEF\U00030000-\U0003134F"
    "々〆〇〻"
)
JAPANESE_CLASS = KANA_CLASS + KANJI_CLASS

_EXTRA_PHONETIC = {"ー", "・", "ゝ", "ゞ", "ヽ", "ヾ"}


def is_kana_char(ch: str) -> bool:
    if not ch:
        return False
    if ch in _EXTRA_PHONETIC:
        return True
    code = ord(ch)
    return (
        0x3041 <= code <= 0x309F  # Hiragana
        or 0x30A0 <= code <= 0x30FF  # Katakana
        or 0x31F0 <= code <= 0x31FF  # Katakana phonetic extensions
        or 0xFF66 <= code <= 0xFF9F  # Halfwidth katakana
    )


def is_kana_string(text: str) -> bool:
    """True when every character of a non-empty string is phonetic."""
    if not text:
        return False
    return all(is_kana_char(ch) for ch in text)


def katakana_to_hiragana(text: str) -> str:
    result = []
    for ch in text:
        code = ord(ch)
        if 0x30A1 <= code <= 0x30F6:
            result.append(chr(code - 0x60))
        elif ch == "ヽ":
            result.append("ゝ")
        elif ch == "ヾ":
            result.append("ゞ")
        else:
            result.append(ch)
    return "".join(result)
