import json
import logging
import os
from typing import Any, List, Optional, Tuple, Union

import pandas as pd

from . import messages
from .errors import ImportInvalid, SourceLoadFailed, StorageOperationFailed
from .models import LineKind, OutputLine, Word
from .store import Store

logger = logging.getLogger(__name__)


def validate_vocabulary(data: Any) -> List[Word]:
    """Checks a decoded vocabulary document and converts it to words.

    The document must be a list of objects with string `ja` and `en` fields;
    one bad element rejects the whole document.
    """
    if not isinstance(data, list):
        raise ImportInvalid("Top level must be an array.")
    words = []
    for position, item in enumerate(data, start=1):
        if not isinstance(item, dict):
            raise ImportInvalid(f"Item {position} is not an object.")
        ja, en = item.get("ja"), item.get("en")
        if not isinstance(ja, str) or not isinstance(en, str):
            raise ImportInvalid(f"Item {position} needs string 'ja' and 'en' fields.")
        words.append(Word(ja=ja, en=en))
    return words


def parse_vocabulary(content: Union[str, bytes]) -> List[Word]:
    """Parses a JSON vocabulary document."""
    try:
        data = json.loads(content)
    except (ValueError, UnicodeDecodeError) as e:
        raise ImportInvalid(f"Not valid JSON: {e}") from e
    return validate_vocabulary(data)


def read_vocabulary_file(path: str) -> List[Word]:
    """Reads the default vocabulary from a `.json` or `.csv` file."""
    if not os.path.exists(path):
        raise SourceLoadFailed(f"File {path} not found.")
    try:
        if path.lower().endswith(".csv"):
            df = pd.read_csv(path, encoding="utf-8", dtype=str, keep_default_na=False)
            if "ja" not in df.columns or "en" not in df.columns:
                raise ImportInvalid(f"{path} is missing 'ja'/'en' columns.")
            return validate_vocabulary(df[["ja", "en"]].to_dict("records"))
        with open(path, encoding="utf-8") as f:
            return parse_vocabulary(f.read())
    except ImportInvalid as e:
        raise SourceLoadFailed(str(e)) from e
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise SourceLoadFailed(f"Failed to read {path}: {e}") from e


async def load_initial_vocabulary(
    store: Optional[Store], source_path: str
) -> Tuple[Optional[List[Word]], List[OutputLine]]:
    """Finds the starting vocabulary: stored snapshot first, then the default file.

    Returns `(words, lines)`; `words` is None when no source produced a
    vocabulary.
    """
    lines = [OutputLine(text=messages.LOADING_VOCAB)]

    if store is not None:
        try:
            stored = await store.load_vocabulary()
        except StorageOperationFailed as e:
            logger.error(f"Reading stored vocabulary failed: {e}")
            stored = None
        if stored:
            logger.info(f"Loaded {len(stored)} words from the store")
            lines.append(
                OutputLine(kind=LineKind.SUCCESS, text=messages.LOADED_FROM_STORE.format(count=len(stored)))
            )
            return stored, lines
        lines.append(OutputLine(text=messages.STORE_EMPTY_FALLBACK))

    try:
        words = read_vocabulary_file(source_path)
    except SourceLoadFailed as e:
        logger.error(f"Default vocabulary unavailable: {e}")
        lines.append(OutputLine(kind=LineKind.ERROR, text=messages.VOCAB_LOAD_ERROR.format(error=e)))
        return None, lines

    logger.info(f"Loaded {len(words)} words from {source_path}")
    lines.append(
        OutputLine(kind=LineKind.SUCCESS, text=messages.LOADED_FROM_SOURCE.format(count=len(words)))
    )
    if store is not None:
        try:
            await store.save_vocabulary(words)
            lines.append(OutputLine(kind=LineKind.INFO, text=messages.SOURCE_SAVED_TO_STORE))
        except StorageOperationFailed as e:
            logger.warning(f"Could not save default vocabulary to the store: {e}")
            lines.append(OutputLine(kind=LineKind.INFO, text=messages.SOURCE_NOT_SAVED.format(error=e)))
    return words, lines
