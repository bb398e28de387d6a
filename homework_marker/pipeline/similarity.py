"""
Text Similarity Module
Normalization and fuzzy scoring used by question detection
"""
import re
from typing import Set

from thefuzz import fuzz

# Containment only counts as a strong match for short texts
SHORT_TEXT_LENGTH = 50
CONTAINMENT_FLOOR = 0.7

_DIAGRAM = re.compile(r"\[[^\]]*\]")
_FRAC = re.compile(r"\\[dt]?frac\s*\{([^{}]*)\}\s*\{([^{}]*)\}")
_LATEX_SYMBOLS = [
    (re.compile(r"\\times"), "x"),
    (re.compile(r"\\cdot"), "x"),
    (re.compile(r"\\div"), "/"),
    (re.compile(r"\\le(q)?"), "<="),
    (re.compile(r"\\ge(q)?"), ">="),
]
_LATEX_COMMAND = re.compile(r"\\[a-zA-Z]+")
_QUESTION_PREFIX = re.compile(
    r"^\s*(?:(?:question|q)\s*\d+[a-z]{0,4}\s*(?:\([a-z]{1,4}\))?"
    r"|\d+\s*[.)]\s*(?:\([a-z]{1,4}\))?)\s*[.:]?",
    re.IGNORECASE,
)
_PUNCTUATION = re.compile(r"[^\w/:]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """
    Normalize question or answer text for comparison.

    Steps:
    1. Drop bracketed diagram descriptions ("[diagram of a triangle]")
    2. Rewrite LaTeX fractions and operators, strip remaining commands
    3. Drop a leading question-number prefix ("Q3 (a)", "12.")
    4. Lowercase, keep only word characters plus "/" and ":"
    5. Remove all whitespace

    Args:
        text: Raw text

    Returns:
        Normalized comparison string (possibly empty)
    """
    if not text:
        return ""

    text = _DIAGRAM.sub(" ", text)

    # Nested fractions resolve from the inside out
    previous = None
    while previous != text:
        previous = text
        text = _FRAC.sub(r"\1/\2", text)
    for pattern, replacement in _LATEX_SYMBOLS:
        text = pattern.sub(replacement, text)
    text = _LATEX_COMMAND.sub(" ", text)
    text = text.replace("{", " ").replace("}", " ").replace("$", " ")

    text = _QUESTION_PREFIX.sub("", text)
    text = text.lower()
    text = _PUNCTUATION.sub(" ", text).replace("_", " ")
    return _WHITESPACE.sub("", text)


def ngrams(text: str, n: int = 3) -> Set[str]:
    """Character n-grams of a string; the whole string when shorter than n"""
    if len(text) < n:
        return {text} if text else set()
    return {text[i:i + n] for i in range(len(text) - n + 1)}


def ngram_similarity(a: str, b: str, n: int = 3) -> float:
    """Jaccard similarity of character n-gram sets"""
    grams_a, grams_b = ngrams(a, n), ngrams(b, n)
    if not grams_a or not grams_b:
        return 0.0
    return len(grams_a & grams_b) / len(grams_a | grams_b)


def calculate_similarity(text_a: str, text_b: str) -> float:
    """
    Similarity of two texts in [0, 1].

    Identical normalized strings score 1.0. When the shorter text is
    short and contained in the longer one, the score is at least 0.7.
    Otherwise the better of the fuzzy ratio and trigram Jaccard is used.
    """
    a = normalize_text(text_a)
    b = normalize_text(text_b)
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0

    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    if len(shorter) < SHORT_TEXT_LENGTH and shorter in longer:
        return max(CONTAINMENT_FLOOR, len(shorter) / len(longer))

    ratio = fuzz.ratio(a, b) / 100.0
    return max(ratio, ngram_similarity(a, b))
