import logging
import random
from typing import List, Optional, Tuple, Union

from . import messages
from .errors import (
    BackendUnavailable,
    ImportInvalid,
    InputValidationError,
    LexiCliError,
    StorageOperationFailed,
)
from .models import (
    AppState,
    CommandResult,
    Direction,
    ErrorMode,
    ExitedMode,
    LearnDirectionMode,
    LearningMode,
    LearningSession,
    LearnRangeMode,
    LearnSaveTestNameMode,
    LineKind,
    LoadVocabFileMode,
    MenuMode,
    OutputLine,
    ReviewChooseTestMode,
    ReviewingMode,
    ReviewSession,
    SearchResultsMode,
    SearchTermMode,
)
from .session import (
    abort,
    answer_feedback,
    create_learning_session,
    create_review_session,
    finalize_review,
    missed_words,
    parse_direction,
    question_lines,
    require_range,
    require_store,
    save_missed_words,
    score_answer,
    search_words,
    select_range,
    summary_line,
)
from .store import Store
from .vocabulary import load_initial_vocabulary, parse_vocabulary

logger = logging.getLogger(__name__)

Step = Tuple[AppState, List[OutputLine]]


def _line(text: str, kind: LineKind = LineKind.SYSTEM) -> OutputLine:
    return OutputLine(kind=kind, text=text)


def _prompt(text: str) -> OutputLine:
    return OutputLine(kind=LineKind.PROMPT, text=text)


def _goto(state: AppState, mode) -> AppState:
    return state.model_copy(update={"mode": mode})


class Dispatcher:
    """Routes each input line to the handler for the current mode.

    The dispatcher itself holds no per-user state: every call takes an
    `AppState` and returns the next one inside a `CommandResult`.
    """

    def __init__(
        self,
        store: Optional[Store],
        vocab_source: str,
        history_size: int = 100,
        review_direction: Direction = Direction.EN_TO_JA,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.vocab_source = vocab_source
        self.history_size = history_size
        self.review_direction = review_direction
        self.rng = rng
        self._handlers = {
            "MENU": self._handle_menu,
            "LEARN_RANGE": self._handle_learn_range,
            "LEARN_DIRECTION": self._handle_learn_direction,
            "LEARNING": self._handle_learning_answer,
            "LEARN_SAVE_TESTNAME": self._handle_save_test_name,
            "REVIEW_CHOOSE_TEST": self._handle_review_choose_test,
            "REVIEWING": self._handle_review_answer,
            "SEARCH_TERM": self._handle_search_term,
            "SEARCH_RESULTS": self._handle_search_results,
            "LOAD_VOCAB_FILE": self._handle_load_vocab_file,
            "EXITED": self._handle_ended,
            "ERROR": self._handle_ended,
        }

    # --- Bootstrap ---
    async def start(self) -> CommandResult:
        """Loads the starting vocabulary and leaves LOADING."""
        state = AppState()
        lines = [_line(messages.WELCOME, LineKind.HEADER)]
        words, load_lines = await load_initial_vocabulary(self.store, self.vocab_source)
        lines.extend(load_lines)

        if words is None:
            if self.store is None:
                # Nothing to import into either: no way forward.
                logger.error("No vocabulary source and no storage backend")
                lines.append(_line(messages.VOCAB_LOAD_FATAL, LineKind.ERROR))
                return CommandResult(state=_goto(state, ErrorMode()), lines=lines)
            lines.append(_line(messages.VOCAB_LOAD_HINT, LineKind.INFO))
        else:
            state = state.model_copy(update={"vocabulary": words})

        state, menu_lines = self._menu(state)
        return CommandResult(state=state, lines=lines + menu_lines)

    # --- Entry points ---
    async def handle(self, state: AppState, command: str) -> CommandResult:
        """Processes one input line to completion."""
        lines = [_line(f"{messages.PROMPT_SYMBOL}{command}", LineKind.USER)]
        state = self._remember(state, command)
        mode = state.mode

        try:
            if isinstance(mode, (LearningMode, ReviewingMode)) and command.strip().casefold() == "q":
                state, out = await self._abort_session(state, mode)
            else:
                handler = self._handlers.get(mode.name)
                if handler is None:
                    state, out = self._fallback(state, command)
                else:
                    state, out = await handler(state, mode, command)
        except LexiCliError as e:
            logger.error(f"Unhandled error in mode {mode.name}: {e}")
            state, out = self._menu(state, [_line(str(e), LineKind.ERROR)])

        return CommandResult(state=state, lines=lines + out)

    async def import_vocabulary(
        self, state: AppState, content: Union[str, bytes], file_name: str
    ) -> CommandResult:
        """Installs a vocabulary delivered out-of-band while in LOAD_VOCAB_FILE."""
        if not isinstance(state.mode, LoadVocabFileMode):
            return CommandResult(
                state=state, lines=[_line(messages.VOCAB_FILE_UNEXPECTED, LineKind.ERROR)]
            )

        lines = [_line(messages.VOCAB_FILE_SELECTED.format(name=file_name))]
        try:
            words = parse_vocabulary(content)
        except ImportInvalid as e:
            logger.warning(f"Rejected vocabulary file {file_name}: {e}")
            lines.append(_line(messages.VOCAB_FILE_LOAD_INVALID.format(error=e), LineKind.ERROR))
            state, menu_lines = self._menu(state)
            return CommandResult(state=state, lines=lines + menu_lines)

        try:
            await require_store(self.store).save_vocabulary(words)
        except BackendUnavailable as e:
            lines.append(_line(str(e), LineKind.ERROR))
            lines.append(
                _line(
                    messages.VOCAB_FILE_LOAD_ERROR.format(error="Database not available to save vocabulary."),
                    LineKind.ERROR,
                )
            )
        except StorageOperationFailed as e:
            logger.error(f"Saving imported vocabulary failed: {e}")
            lines.append(_line(messages.VOCAB_FILE_LOAD_ERROR.format(error=e), LineKind.ERROR))
        else:
            logger.info(f"Imported {len(words)} words from {file_name}")
            state = state.model_copy(update={"vocabulary": words})
            lines.append(
                _line(messages.VOCAB_FILE_LOAD_SUCCESS.format(count=len(words)), LineKind.SUCCESS)
            )

        state, menu_lines = self._menu(state)
        return CommandResult(state=state, lines=lines + menu_lines)

    # --- Helpers ---
    def _remember(self, state: AppState, command: str) -> AppState:
        if not command.strip():
            return state
        history = state.history
        if history and history[-1] == command:
            return state
        history = (history + [command])[-self.history_size :]
        return state.model_copy(update={"history": history})

    def _menu(self, state: AppState, lines: Optional[List[OutputLine]] = None) -> Step:
        out = list(lines or [])
        out.append(_line(messages.MENU_HEADER, LineKind.HEADER))
        out.extend(_line(text) for text in messages.MENU_LINES)
        out.append(_prompt(messages.CHOOSE_OPTION))
        return _goto(state, MenuMode()), out

    def _fallback(self, state: AppState, command: str) -> Step:
        logger.warning(f"No handler for mode {state.mode.name}")
        return self._menu(
            state, [_line(messages.UNKNOWN_MODE.format(command=command), LineKind.ERROR)]
        )

    def _range_prompt(self, state: AppState) -> OutputLine:
        return _prompt(messages.ENTER_RANGE.format(count=len(state.vocabulary)))

    # --- Menu ---
    async def _handle_menu(self, state, mode, command) -> Step:
        choice = command.strip()
        if choice in (messages.MENU_LEARN, messages.MENU_REVIEW) and not state.vocabulary:
            return self._menu(state, [_line(messages.VOCAB_EMPTY, LineKind.ERROR)])
        if choice == messages.MENU_LEARN:
            return _goto(state, LearnRangeMode()), [self._range_prompt(state)]
        if choice == messages.MENU_REVIEW:
            return _goto(state, ReviewChooseTestMode()), [_prompt(messages.CHOOSE_REVIEW_TEST)]
        if choice == messages.MENU_SEARCH:
            return _goto(state, SearchTermMode()), [_prompt(messages.ENTER_SEARCH_TERM)]
        if choice == messages.MENU_LOAD_VOCAB:
            return _goto(state, LoadVocabFileMode()), [_prompt(messages.PROMPT_LOAD_VOCAB_FILE)]
        if choice == messages.MENU_EXIT:
            return _goto(state, ExitedMode()), [_line(messages.EXIT_MESSAGE, LineKind.INFO)]
        return state, [
            _line(messages.INVALID_OPTION, LineKind.ERROR),
            _prompt(messages.CHOOSE_OPTION),
        ]

    # --- Learning ---
    async def _handle_learn_range(self, state, mode, command) -> Step:
        if not state.vocabulary:
            return self._menu(state, [_line(messages.VOCAB_EMPTY, LineKind.ERROR)])
        try:
            bounds = require_range(command, len(state.vocabulary))
        except InputValidationError as e:
            return state, [_line(str(e), LineKind.ERROR), self._range_prompt(state)]
        selected = select_range(state.vocabulary, bounds)
        return (
            _goto(state, LearnDirectionMode(selected_words=selected)),
            [_prompt(messages.CHOOSE_DIRECTION)],
        )

    async def _handle_learn_direction(self, state, mode, command) -> Step:
        try:
            direction = parse_direction(command)
        except InputValidationError as e:
            return state, [_line(str(e), LineKind.ERROR), _prompt(messages.CHOOSE_DIRECTION)]
        session = create_learning_session(mode.selected_words, direction, self.rng)
        logger.info(f"Learning session started: {session.total_questions} words, {direction.value}")
        lines = [_line(messages.STARTING_SESSION, LineKind.INFO)]
        lines.extend(question_lines(session))
        return _goto(state, LearningMode(session=session)), lines

    async def _handle_learning_answer(self, state, mode, command) -> Step:
        word = mode.session.current_word
        session, correct = score_answer(mode.session, command)
        lines = [answer_feedback(session, word, correct)]
        if not session.finished:
            lines.extend(question_lines(session))
            return _goto(state, LearningMode(session=session)), lines
        state, out = self._finish_learning(state, session)
        return state, lines + out

    def _finish_learning(self, state: AppState, session: LearningSession) -> Step:
        logger.info(
            f"Learning session finished: {session.correct_answers}/{session.total_questions}"
        )
        lines = [summary_line(session)]
        missed = missed_words(session)
        if missed:
            lines.append(_prompt(messages.ENTER_TEST_NAME))
            return _goto(state, LearnSaveTestNameMode(missed_words=missed)), lines
        return self._menu(state, lines + [_line(messages.NO_MISSED_WORDS, LineKind.SUCCESS)])

    async def _handle_save_test_name(self, state, mode, command) -> Step:
        lines = await save_missed_words(self.store, command, mode.missed_words)
        return self._menu(state, lines)

    # --- Review ---
    async def _handle_review_choose_test(self, state, mode, command) -> Step:
        choice = command.strip()
        if choice.lower() == "menu":
            return self._menu(state)
        if choice.lower() == "ls":
            return state, await self._list_tests() + [_prompt(messages.CHOOSE_REVIEW_TEST)]
        if not choice:
            return state, [_prompt(messages.CHOOSE_REVIEW_TEST)]
        try:
            store = require_store(self.store)
        except BackendUnavailable as e:
            return self._menu(state, [_line(str(e), LineKind.ERROR)])

        lines = [_line(messages.LOADING_TEST.format(name=choice), LineKind.INFO)]
        try:
            record = await store.get_record(choice)
        except StorageOperationFailed as e:
            logger.error(f"Loading test '{choice}' failed: {e}")
            lines.append(_line(messages.TEST_LOAD_ERROR.format(error=e), LineKind.ERROR))
            return state, lines + [_prompt(messages.CHOOSE_REVIEW_TEST)]
        if record is None or not record.words:
            lines.append(_line(messages.TEST_NOT_FOUND.format(name=choice), LineKind.ERROR))
            return state, lines + [_prompt(messages.CHOOSE_REVIEW_TEST)]

        session = create_review_session(
            record.test_name, record.words, self.review_direction, self.rng
        )
        logger.info(f"Review session started: '{choice}' with {session.total_questions} words")
        lines.extend(question_lines(session))
        return _goto(state, ReviewingMode(session=session)), lines

    async def _list_tests(self) -> List[OutputLine]:
        try:
            names = await require_store(self.store).list_tests()
        except BackendUnavailable as e:
            return [_line(str(e), LineKind.ERROR)]
        except StorageOperationFailed as e:
            logger.error(f"Listing tests failed: {e}")
            return [_line(messages.LISTING_TESTS_ERROR.format(error=e), LineKind.ERROR)]
        if not names:
            return [_line(messages.NO_TESTS_FOUND, LineKind.INFO)]
        return [_line(messages.AVAILABLE_TESTS, LineKind.HEADER)] + [
            _line(f"- {name}") for name in names
        ]

    async def _handle_review_answer(self, state, mode, command) -> Step:
        word = mode.session.current_word
        session, correct = score_answer(mode.session, command)
        lines = [answer_feedback(session, word, correct)]
        if not session.finished:
            lines.extend(question_lines(session))
            return _goto(state, ReviewingMode(session=session)), lines
        state, out = await self._finish_review(state, session)
        return state, lines + out

    async def _finish_review(self, state: AppState, session: ReviewSession) -> Step:
        lines = await finalize_review(session, self.store)
        return self._menu(state, lines)

    # --- Abort ---
    async def _abort_session(self, state, mode) -> Step:
        session = mode.session
        lines = [
            _line(
                messages.SESSION_INTERRUPTED.format(
                    answered=session.current_index, total=session.total_questions
                ),
                LineKind.INFO,
            )
        ]
        session = abort(session)
        if isinstance(mode, ReviewingMode):
            state, out = await self._finish_review(state, session)
        else:
            state, out = self._finish_learning(state, session)
        return state, lines + out

    # --- Search ---
    async def _handle_search_term(self, state, mode, command) -> Step:
        if not command.strip():
            return state, [_prompt(messages.ENTER_SEARCH_TERM)]
        lines = [_line(messages.SEARCHING, LineKind.INFO)]
        if not state.vocabulary:
            lines.append(_line(messages.SEARCH_VOCAB_EMPTY, LineKind.INFO))
        else:
            results = search_words(state.vocabulary, command)
            if results:
                lines.append(_line(messages.SEARCH_RESULTS_HEADER, LineKind.HEADER))
                lines.extend(_line(f"{word.en} - {word.ja}") for word in results)
            else:
                lines.append(_line(messages.NO_SEARCH_RESULTS, LineKind.INFO))
        lines.append(_prompt(messages.PRESS_ENTER_CONTINUE))
        return _goto(state, SearchResultsMode()), lines

    async def _handle_search_results(self, state, mode, command) -> Step:
        return self._menu(state)

    # --- Vocabulary file ---
    async def _handle_load_vocab_file(self, state, mode, command) -> Step:
        return self._menu(state, [_line(messages.VOCAB_FILE_NO_FILE, LineKind.INFO)])

    async def _handle_ended(self, state, mode, command) -> Step:
        return state, [_line(messages.SESSION_ENDED, LineKind.INFO)]
