"""Session engine: word selection, scoring and finalize-time reconciliation.

Sessions are pydantic values. Every step returns an updated copy so the
dispatcher can thread the session through its mode payload instead of
holding one shared mutable "current session".
"""

import logging
import random
from enum import Enum
from typing import List, Optional, Sequence, Tuple, TypeVar

from . import messages
from .errors import BackendUnavailable, InputValidationError, StorageOperationFailed
from .matcher import check_answer
from .models import (
    Direction,
    LearningSession,
    LineKind,
    OutputLine,
    ReviewSession,
    Word,
)
from .store import Store

logger = logging.getLogger(__name__)

SessionT = TypeVar("SessionT", bound=LearningSession)


# --- Selection ---
def parse_range(range_str: str, max_count: int) -> Optional[Tuple[int, int]]:
    """Parses "all" or a 1-indexed inclusive "start-end" range.

    Returns the 0-indexed inclusive pair, or None when the range is invalid.
    """
    text = range_str.strip()
    if max_count < 1:
        return None
    if text.lower() == "all":
        return 0, max_count - 1

    parts = text.split("-")
    if len(parts) != 2:
        return None
    try:
        start = int(parts[0])
        end = int(parts[1])
    except ValueError:
        return None
    if start < 1 or end > max_count or start > end:
        return None
    return start - 1, end - 1


def require_range(range_str: str, max_count: int) -> Tuple[int, int]:
    bounds = parse_range(range_str, max_count)
    if bounds is None:
        raise InputValidationError(messages.INVALID_RANGE.format(count=max_count))
    return bounds


def parse_direction(choice: str) -> Direction:
    """Maps the "1"/"2" direction menu answer to a Direction."""
    choice = choice.strip()
    if choice == "1":
        return Direction.EN_TO_JA
    if choice == "2":
        return Direction.JA_TO_EN
    raise InputValidationError(messages.INVALID_DIRECTION)


def require_store(store: Optional[Store]) -> Store:
    if store is None:
        raise BackendUnavailable(messages.BACKEND_UNAVAILABLE)
    return store


def shuffle_words(words: Sequence[Word], rng: Optional[random.Random] = None) -> List[Word]:
    """Returns a uniformly shuffled copy of `words` (Fisher-Yates)."""
    shuffled = list(words)
    (rng or random).shuffle(shuffled)
    return shuffled


def select_range(vocabulary: Sequence[Word], bounds: Tuple[int, int]) -> List[Word]:
    start, end = bounds
    return list(vocabulary[start : end + 1])


def create_learning_session(
    words: Sequence[Word], direction: Direction, rng: Optional[random.Random] = None
) -> LearningSession:
    return LearningSession(
        words=shuffle_words(words, rng),
        total_questions=len(words),
        direction=direction,
    )


def create_review_session(
    test_name: str,
    words: Sequence[Word],
    direction: Direction = Direction.EN_TO_JA,
    rng: Optional[random.Random] = None,
) -> ReviewSession:
    return ReviewSession(
        words=shuffle_words(words, rng),
        total_questions=len(words),
        direction=direction,
        test_name=test_name,
        initial_words=list(words),
    )


def search_words(vocabulary: Sequence[Word], term: str) -> List[Word]:
    """Case-insensitive substring search over both sides of each word."""
    needle = term.strip().lower()
    if not needle:
        return []
    return [
        word
        for word in vocabulary
        if needle in word.en.lower() or needle in word.ja.lower()
    ]


# --- Question loop ---
def question_lines(session: LearningSession) -> List[OutputLine]:
    word = session.current_word
    prompt = word.en if session.direction == Direction.EN_TO_JA else word.ja
    return [
        OutputLine(kind=LineKind.QUESTION, text=messages.QUESTION.format(prompt=prompt)),
        OutputLine(kind=LineKind.PROMPT, text=messages.QUIZ_PROMPT),
    ]


def expected_answer(word: Word, direction: Direction) -> str:
    return word.ja if direction == Direction.EN_TO_JA else word.en


def score_answer(session: SessionT, answer: str) -> Tuple[SessionT, bool]:
    """Scores `answer` against the current word and advances by one.

    Returns `(updated_session, correct)`. A missed word is recorded once per
    distinct `en`, however often it is answered incorrectly.
    """
    word = session.current_word
    correct = check_answer(answer, word, session.direction)
    update = {"current_index": session.current_index + 1}
    if correct:
        update["correct_answers"] = session.correct_answers + 1
    elif word.key not in session.missed_in_session:
        missed = dict(session.missed_in_session)
        missed[word.key] = word
        update["missed_in_session"] = missed
    return session.model_copy(update=update), correct


def answer_feedback(session: LearningSession, word: Word, correct: bool) -> OutputLine:
    if correct:
        return OutputLine(kind=LineKind.SUCCESS, text=messages.CORRECT)
    return OutputLine(
        kind=LineKind.ERROR,
        text=messages.INCORRECT.format(answer=expected_answer(word, session.direction)),
    )


def abort(session: SessionT) -> SessionT:
    """Jumps the session to its end, keeping the partial score and missed set.

    The number of questions actually answered is kept in `answered` so the
    summary scores against it rather than the full word count.
    """
    return session.model_copy(
        update={"current_index": len(session.words), "answered": session.current_index}
    )


def summary_line(session: LearningSession) -> OutputLine:
    if session.answered is None:
        total = session.total_questions
        template = messages.SESSION_SUMMARY
    else:
        total = session.answered
        template = messages.SESSION_ABORTED_SUMMARY
    percent = (session.correct_answers / total) * 100 if total else 0.0
    return OutputLine(
        kind=LineKind.INFO,
        text=template.format(correct=session.correct_answers, total=total, percent=percent),
    )


def missed_words(session: LearningSession) -> List[Word]:
    return list(session.missed_in_session.values())


# --- Learning finalize ---
async def save_missed_words(
    store: Optional[Store], test_name: str, words: List[Word]
) -> List[OutputLine]:
    """Merge-saves `words` under `test_name`.

    A blank name or a missing backend skips the save with an informational
    line. Storage failures are reported and abandon only this save.
    """
    name = test_name.strip()
    if not name:
        return [OutputLine(kind=LineKind.INFO, text=messages.TEST_NAME_EMPTY_SKIP)]
    try:
        store = require_store(store)
    except BackendUnavailable as e:
        return [OutputLine(kind=LineKind.INFO, text=str(e))]

    lines = [OutputLine(kind=LineKind.INFO, text=messages.SAVING_MISSED_WORDS)]
    try:
        merged = await store.merge_save(name, words)
    except StorageOperationFailed as e:
        logger.error(f"Saving missed words to '{name}' failed: {e}")
        lines.append(
            OutputLine(kind=LineKind.ERROR, text=messages.MISSED_WORDS_SAVE_ERROR.format(error=e))
        )
        return lines

    logger.info(f"Saved {len(words)} missed words to '{name}' ({len(merged)} total)")
    lines.append(OutputLine(kind=LineKind.SUCCESS, text=messages.MISSED_WORDS_SAVED.format(name=name)))
    return lines


# --- Review finalize ---
class ReviewAction(str, Enum):
    DELETE_COMPLETED = "delete_completed"
    REPLACE = "replace"
    DELETE_EMPTY = "delete_empty"
    NONE = "none"


def plan_review_update(session: ReviewSession) -> Tuple[ReviewAction, List[Word]]:
    """Decides what happens to the test record when a review ends.

    Only initial words still missed in this session survive, and they
    overwrite the record (no merge). Words never asked because the session
    was aborted are dropped as well.
    """
    words_to_keep = [
        word for word in session.initial_words if word.key in session.missed_in_session
    ]
    if session.correct_answers == session.total_questions and session.total_questions > 0:
        return ReviewAction.DELETE_COMPLETED, []
    if words_to_keep:
        return ReviewAction.REPLACE, words_to_keep
    if session.initial_words:
        return ReviewAction.DELETE_EMPTY, []
    return ReviewAction.NONE, []


async def finalize_review(session: ReviewSession, store: Optional[Store]) -> List[OutputLine]:
    """Reports the score and reconciles the test record with the store."""
    lines = [summary_line(session)]
    action, words_to_keep = plan_review_update(session)
    name = session.test_name
    logger.info(
        f"Review of '{name}' finished: {session.correct_answers}/{session.total_questions}, action={action.value}"
    )
    if action == ReviewAction.NONE:
        return lines
    try:
        store = require_store(store)
    except BackendUnavailable as e:
        lines.append(OutputLine(kind=LineKind.INFO, text=str(e)))
        lines.append(OutputLine(kind=LineKind.INFO, text=messages.REVIEW_NOT_SAVED.format(name=name)))
        return lines

    try:
        if action == ReviewAction.REPLACE:
            await store.replace(name, words_to_keep)
            text = messages.REVIEW_UPDATED.format(name=name)
        else:
            await store.delete_test(name)
            if action == ReviewAction.DELETE_COMPLETED:
                text = messages.REVIEW_ALL_CORRECT.format(name=name)
            else:
                text = messages.REVIEW_CLEARED.format(name=name)
    except StorageOperationFailed as e:
        logger.error(f"Updating review test '{name}' failed: {e}")
        lines.append(OutputLine(kind=LineKind.ERROR, text=messages.REVIEW_UPDATE_ERROR.format(error=e)))
        return lines

    lines.append(OutputLine(kind=LineKind.SUCCESS, text=text))
    return lines
