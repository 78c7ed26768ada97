"""Locale-aware feedback strings for scoring results.

Only two locales are carried: English (`en`, the baseline) and Filipino
(`tl`). Unknown locales fall back to English.
"""

from typing import Dict

DEFAULT_LOCALE = "en"

_MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "correct_points": "Correct! You earned {points:.1f} points.",
        "correct": "Correct answer!",
        "incorrect_penalty": "Incorrect. Lost {points:.1f} points.",
        "incorrect": "Incorrect answer. Try again.",
        "no_answer": "No answer selected.",
        "partial": "Partially correct! You earned {pct:g}% of the points.",
        "high_confidence": " (High confidence)",
        "low_confidence": " (Low confidence)",
        "below_threshold": " (Below minimum threshold)",
        "fast_bonus": " (Fast answer! Bonus: +{bonus:.1f})",
        "hard_question": " (Difficult question!)",
        "easy_question": " (Easy question)",
        "combo": " (Combo x{combo}! Multiplier: {multiplier:.2f}x)",
        "combo_broken": " (Combo broken)",
        "recommend_harder": "Excellent! Try harder questions.",
        "keep_practicing": "Keep practicing.",
    },
    "tl": {
        "correct_points": "Tama! Nakakuha ka ng {points:.1f} puntos.",
        "correct": "Tama ang sagot!",
        "incorrect_penalty": "Mali. Nabawasan ng {points:.1f} puntos.",
        "incorrect": "Mali ang sagot. Subukan muli.",
        "no_answer": "Walang napiling sagot.",
        "partial": "Bahagyang tama! Nakakuha ka ng {pct:g}% ng puntos.",
        "high_confidence": " (Mataas na kumpiyansa)",
        "low_confidence": " (Mababang kumpiyansa)",
        "below_threshold": " (Mas mababa sa minimum threshold)",
        "fast_bonus": " (Mabilis na sagot! Bonus: +{bonus:.1f})",
        "hard_question": " (Mahirap na tanong!)",
        "easy_question": " (Madaling tanong)",
        "combo": " (Combo x{combo}! Multiplier: {multiplier:.2f}x)",
        "combo_broken": " (Naputol ang combo)",
        "recommend_harder": "Magaling! Subukan ang mas mahirap na mga tanong.",
        "keep_practicing": "Magpatuloy sa pag-aaral.",
    },
}


def supported_locales():
    """Return the locale codes feedback can be rendered in."""
    return sorted(_MESSAGES)


def message(key: str, locale: str = DEFAULT_LOCALE, **params) -> str:
    """Render message `key` for `locale`, falling back to English."""
    table = _MESSAGES.get(locale) or _MESSAGES[DEFAULT_LOCALE]
    return table[key].format(**params)


def outcome(is_correct: bool, points_earned: float, locale: str = DEFAULT_LOCALE) -> str:
    """Base feedback line for a correct/incorrect answer.

    Mentions the point delta when one was awarded or deducted.
    """
    if is_correct:
        if points_earned > 0:
            return message("correct_points", locale, points=points_earned)
        return message("correct", locale)
    if points_earned < 0:
        return message("incorrect_penalty", locale, points=abs(points_earned))
    return message("incorrect", locale)
