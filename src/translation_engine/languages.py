# SPDX-License-Identifier: Apache-2.0
"""Language codes, display names and heuristic language detection."""

from __future__ import annotations

import re
from enum import Enum


class LanguageCode(str, Enum):
    """Language codes understood by the engine.

    ``AUTO`` is a sentinel meaning "detect the source language".
    """

    AUTO = "auto"
    ZH_CN = "zh-CN"
    ZH_TW = "zh-TW"
    EN = "en"
    JA = "ja"
    KO = "ko"
    FR = "fr"
    DE = "de"
    ES = "es"
    RU = "ru"
    IT = "it"
    PT = "pt"
    AR = "ar"
    TH = "th"
    VI = "vi"
    ID = "id"
    MS = "ms"
    NL = "nl"
    PL = "pl"
    TR = "tr"
    SV = "sv"
    DA = "da"
    NO = "no"
    FI = "fi"
    CS = "cs"
    HU = "hu"
    RO = "ro"
    BG = "bg"
    HR = "hr"
    SK = "sk"
    SL = "sl"
    ET = "et"
    LV = "lv"
    LT = "lt"
    UK = "uk"
    EL = "el"
    HE = "he"
    FA = "fa"
    HI = "hi"
    BN = "bn"
    UR = "ur"
    TA = "ta"
    TE = "te"
    ML = "ml"
    KN = "kn"
    GU = "gu"
    PA = "pa"
    MR = "mr"
    NE = "ne"
    SI = "si"
    MY = "my"
    KM = "km"
    LO = "lo"
    KA = "ka"
    AM = "am"
    SW = "sw"
    ZU = "zu"
    AF = "af"
    SQ = "sq"
    AZ = "az"
    BE = "be"
    BS = "bs"
    EU = "eu"
    CA = "ca"
    CY = "cy"
    EO = "eo"
    GL = "gl"
    IS = "is"
    GA = "ga"
    MT = "mt"
    MK = "mk"
    LA = "la"
    MI = "mi"
    SM = "sm"
    SN = "sn"
    ST = "st"
    TL = "tl"
    TO = "to"
    XH = "xh"
    YO = "yo"
    HAW = "haw"
    CEB = "ceb"
    NY = "ny"
    CO = "co"
    FY = "fy"
    GD = "gd"
    HMN = "hmn"
    LB = "lb"
    PS = "ps"
    SD = "sd"
    UZ = "uz"
    KK = "kk"
    KY = "ky"
    TG = "tg"
    MN = "mn"
    YI = "yi"

    def __str__(self) -> str:
        return self.value


LANGUAGE_NAMES: dict[str, str] = {
    "auto": "Auto Detect",
    "zh-CN": "Chinese (Simplified)",
    "zh-TW": "Chinese (Traditional)",
    "en": "English",
    "ja": "Japanese",
    "ko": "Korean",
    "fr": "French",
    "de": "German",
    "es": "Spanish",
    "ru": "Russian",
    "it": "Italian",
    "pt": "Portuguese",
    "ar": "Arabic",
    "th": "Thai",
    "vi": "Vietnamese",
    "id": "Indonesian",
    "ms": "Malay",
    "nl": "Dutch",
    "pl": "Polish",
    "tr": "Turkish",
    "sv": "Swedish",
    "da": "Danish",
    "no": "Norwegian",
    "fi": "Finnish",
    "cs": "Czech",
    "hu": "Hungarian",
    "ro": "Romanian",
    "bg": "Bulgarian",
    "hr": "Croatian",
    "sk": "Slovak",
    "sl": "Slovenian",
    "et": "Estonian",
    "lv": "Latvian",
    "lt": "Lithuanian",
    "uk": "Ukrainian",
    "el": "Greek",
    "he": "Hebrew",
    "fa": "Persian",
    "hi": "Hindi",
    "bn": "Bengali",
    "ur": "Urdu",
    "ta": "Tamil",
    "te": "Telugu",
    "ml": "Malayalam",
    "kn": "Kannada",
    "gu": "Gujarati",
    "pa": "Punjabi",
    "mr": "Marathi",
    "ne": "Nepali",
    "si": "Sinhala",
    "my": "Myanmar",
    "km": "Khmer",
    "lo": "Lao",
    "ka": "Georgian",
    "am": "Amharic",
    "sw": "Swahili",
    "zu": "Zulu",
    "af": "Afrikaans",
    "sq": "Albanian",
    "az": "Azerbaijani",
    "be": "Belarusian",
    "bs": "Bosnian",
    "eu": "Basque",
    "ca": "Catalan",
    "cy": "Welsh",
    "eo": "Esperanto",
    "gl": "Galician",
    "is": "Icelandic",
    "ga": "Irish",
    "mt": "Maltese",
    "mk": "Macedonian",
    "la": "Latin",
    "mi": "Maori",
    "sm": "Samoan",
    "sn": "Shona",
    "st": "Sesotho",
    "tl": "Filipino",
    "to": "Tongan",
    "xh": "Xhosa",
    "yo": "Yoruba",
    "haw": "Hawaiian",
    "ceb": "Cebuano",
    "ny": "Chichewa",
    "co": "Corsican",
    "fy": "Frisian",
    "gd": "Scottish Gaelic",
    "hmn": "Hmong",
    "lb": "Luxembourgish",
    "ps": "Pashto",
    "sd": "Sindhi",
    "uz": "Uzbek",
    "kk": "Kazakh",
    "ky": "Kyrgyz",
    "tg": "Tajik",
    "mn": "Mongolian",
    "yi": "Yiddish",
}

# Checked in order; the first script found wins.
_SCRIPT_PATTERNS: tuple[tuple[re.Pattern[str], LanguageCode], ...] = (
    (re.compile(r"[\u4e00-\u9fff]"), LanguageCode.ZH_CN),
    (re.compile(r"[\u3040-\u309f\u30a0-\u30ff]"), LanguageCode.JA),
    (re.compile(r"[\uac00-\ud7af]"), LanguageCode.KO),
    (re.compile(r"[\u0400-\u04ff]"), LanguageCode.RU),
    (re.compile(r"[\u0600-\u06ff]"), LanguageCode.AR),
)


def get_language_name(code: str) -> str:
    """Return the English display name for a language code.

    Unknown codes are returned unchanged.
    """
    return LANGUAGE_NAMES.get(str(code), str(code))


def is_language_code(code: object) -> bool:
    """Return True if ``code`` is one of the known language codes."""
    if not code or not isinstance(code, str):
        return False
    return code in LanguageCode._value2member_map_


def to_language_code(code: str | LanguageCode) -> LanguageCode:
    """Convert a string to LanguageCode.

    Raises:
        ValueError: If the code is unknown.
    """
    if isinstance(code, LanguageCode):
        return code
    return LanguageCode(code)


def detect_language(text: str) -> LanguageCode:
    """Guess the language of ``text`` from the Unicode scripts it uses.

    This is a best-effort heuristic: Han characters are reported as
    Simplified Chinese even when kana are present, and anything without
    a recognised script falls back to English.
    """
    for pattern, code in _SCRIPT_PATTERNS:
        if pattern.search(text):
            return code
    return LanguageCode.EN
