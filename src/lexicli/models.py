from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# --- Vocabulary ---
class Word(BaseModel):
    model_config = ConfigDict(frozen=True)

    ja: str
    en: str

    @property
    def key(self) -> str:
        """Identity key: the English side, compared case-insensitively."""
        return self.en.casefold()


class Direction(str, Enum):
    EN_TO_JA = "en-to-ja"
    JA_TO_EN = "ja-to-en"


class TestRecord(BaseModel):
    __test__ = False  # not a pytest test class

    test_name: str
    words: List[Word]


# --- Sessions ---
class LearningSession(BaseModel):
    words: List[Word]
    current_index: int = 0
    correct_answers: int = 0
    total_questions: int
    # Keyed by Word.key so a word is recorded at most once.
    missed_in_session: Dict[str, Word] = Field(default_factory=dict)
    direction: Direction = Direction.EN_TO_JA
    # Questions answered before an abort; None while the session runs normally.
    answered: Optional[int] = None

    @property
    def finished(self) -> bool:
        return self.current_index >= len(self.words)

    @property
    def current_word(self) -> Word:
        return self.words[self.current_index]


class ReviewSession(LearningSession):
    test_name: str
    initial_words: List[Word]


# --- Output ---
class LineKind(str, Enum):
    SYSTEM = "system"
    PROMPT = "prompt"
    USER = "user"
    ERROR = "error"
    INFO = "info"
    SUCCESS = "success"
    HEADER = "header"
    QUESTION = "question"
    ANSWER = "answer"


class OutputLine(BaseModel):
    kind: LineKind = LineKind.SYSTEM
    text: str


# --- Modes ---
class LoadingMode(BaseModel):
    name: Literal["LOADING"] = "LOADING"


class MenuMode(BaseModel):
    name: Literal["MENU"] = "MENU"


class LearnRangeMode(BaseModel):
    name: Literal["LEARN_RANGE"] = "LEARN_RANGE"


class LearnDirectionMode(BaseModel):
    name: Literal["LEARN_DIRECTION"] = "LEARN_DIRECTION"
    selected_words: List[Word]


class LearningMode(BaseModel):
    name: Literal["LEARNING"] = "LEARNING"
    session: LearningSession


class LearnSaveTestNameMode(BaseModel):
    name: Literal["LEARN_SAVE_TESTNAME"] = "LEARN_SAVE_TESTNAME"
    missed_words: List[Word]


class ReviewChooseTestMode(BaseModel):
    name: Literal["REVIEW_CHOOSE_TEST"] = "REVIEW_CHOOSE_TEST"


class ReviewingMode(BaseModel):
    name: Literal["REVIEWING"] = "REVIEWING"
    session: ReviewSession


class SearchTermMode(BaseModel):
    name: Literal["SEARCH_TERM"] = "SEARCH_TERM"


class SearchResultsMode(BaseModel):
    name: Literal["SEARCH_RESULTS"] = "SEARCH_RESULTS"


class LoadVocabFileMode(BaseModel):
    name: Literal["LOAD_VOCAB_FILE"] = "LOAD_VOCAB_FILE"


class ExitedMode(BaseModel):
    name: Literal["EXITED"] = "EXITED"


class ErrorMode(BaseModel):
    name: Literal["ERROR"] = "ERROR"


AppMode = Annotated[
    Union[
        LoadingMode,
        MenuMode,
        LearnRangeMode,
        LearnDirectionMode,
        LearningMode,
        LearnSaveTestNameMode,
        ReviewChooseTestMode,
        ReviewingMode,
        SearchTermMode,
        SearchResultsMode,
        LoadVocabFileMode,
        ExitedMode,
        ErrorMode,
    ],
    Field(discriminator="name"),
]


class AppState(BaseModel):
    """Everything the dispatcher needs between two commands."""

    mode: AppMode = Field(default_factory=LoadingMode)
    vocabulary: List[Word] = Field(default_factory=list)
    history: List[str] = Field(default_factory=list)


class CommandResult(BaseModel):
    state: AppState
    lines: List[OutputLine]

    @property
    def mode_name(self) -> str:
        return self.state.mode.name
