import re
from typing import List

from .models import Direction, Word

# Full-width and standard parentheses, with their contents.
_PARENTHETICAL = re.compile(r"（[^）]*）|\([^)]*\)")
# Full-width and standard semicolon / comma.
_SEPARATORS = re.compile(r"[；，;,]")
# Object / target particles allowed to be omitted from the first answer.
PARTICLES = ("を", "に")


def normalize(text: str) -> str:
    return text.strip().casefold()


def split_japanese_answers(ja: str) -> List[str]:
    """Splits a `ja` field into its accepted answers.

    Parenthetical annotations are removed before splitting and never form
    part of an answer. Candidates are trimmed, case-folded and empty ones
    dropped.
    """
    cleaned = _PARENTHETICAL.sub("", ja)
    candidates = (normalize(part) for part in _SEPARATORS.split(cleaned))
    return [candidate for candidate in candidates if candidate]


def _matches_first(answer: str, first: str) -> bool:
    if answer == first:
        return True
    return first.startswith(PARTICLES) and answer == first[1:]


def check_answer(user_input: str, word: Word, direction: Direction) -> bool:
    """Returns True if `user_input` is an accepted answer for `word`."""
    answer = normalize(user_input)
    if not answer:
        return False

    if direction == Direction.JA_TO_EN:
        return answer == normalize(word.en)

    candidates = split_japanese_answers(word.ja)
    if not candidates:
        return False
    first, rest = candidates[0], candidates[1:]
    return _matches_first(answer, first) or answer in rest
