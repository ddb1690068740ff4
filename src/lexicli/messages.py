"""User-facing text produced by the dispatcher and the session engine."""

APP_NAME = "LexiCLI"
PROMPT_SYMBOL = "> "

MENU_LEARN = "1"
MENU_REVIEW = "2"
MENU_SEARCH = "3"
MENU_LOAD_VOCAB = "4"
MENU_EXIT = "5"

WELCOME = f"Welcome to {APP_NAME}!"
LOADING_VOCAB = "Loading vocabulary..."
LOADED_FROM_STORE = "Loaded {count} words from local storage."
LOADED_FROM_SOURCE = "{count} words loaded successfully."
SOURCE_SAVED_TO_STORE = "Default vocabulary loaded and saved to local storage."
SOURCE_NOT_SAVED = "Info: Could not save fetched vocabulary to local storage. ({error})"
STORE_EMPTY_FALLBACK = "No vocabulary found in local storage. Loading default vocabulary..."
VOCAB_LOAD_ERROR = "Error loading vocabulary. ({error})"
VOCAB_LOAD_HINT = "You can load a vocabulary file with menu option 4."
VOCAB_LOAD_FATAL = "Error loading vocabulary. The application cannot start."

MENU_HEADER = "Main Menu:"
MENU_LINES = (
    f"{MENU_LEARN}. 学習セッション (Learn new words)",
    f"{MENU_REVIEW}. 間違えた単語レビュー (Review missed words)",
    f"{MENU_SEARCH}. 単語検索 (Search words)",
    f"{MENU_LOAD_VOCAB}. 単語ファイル読込 (Load vocabulary file)",
    f"{MENU_EXIT}. 終了 (Exit)",
)
CHOOSE_OPTION = "Choose an option: "
INVALID_OPTION = "Invalid option. Please try again."

VOCAB_EMPTY = "Vocabulary is empty. Please load a vocabulary file first (menu option 4)."
ENTER_RANGE = "Enter index range (e.g., 1-100, or 'all'): (1-{count})"
INVALID_RANGE = "Invalid range. Please use format 'start-end' (e.g. 1-50) or 'all'. Max range is {count}"
CHOOSE_DIRECTION = "Choose learning direction (1: English -> Japanese, 2: Japanese -> English): "
INVALID_DIRECTION = "Invalid direction. Please enter 1 or 2."
STARTING_SESSION = "Starting session..."

QUESTION = "Q: {prompt}"
QUIZ_PROMPT = "Your answer ('q' to quit): "
CORRECT = "Correct!"
INCORRECT = "Incorrect. Correct answer: {answer}"
SESSION_INTERRUPTED = "Session interrupted after {answered} of {total} questions."
SESSION_SUMMARY = "Session finished. Correct: {correct}/{total} ({percent:.1f}%)."
SESSION_ABORTED_SUMMARY = "Correct so far: {correct}/{total} ({percent:.1f}%)."
NO_MISSED_WORDS = "No words missed in this session!"

ENTER_TEST_NAME = "Enter a name for this missed words list (or press Enter to skip saving): "
TEST_NAME_EMPTY_SKIP = "Skipped saving missed words."
SAVING_MISSED_WORDS = "Saving missed words..."
MISSED_WORDS_SAVED = "Missed words saved as '{name}'."
MISSED_WORDS_SAVE_ERROR = "Error saving missed words. ({error})"
BACKEND_UNAVAILABLE = "Local storage is not available. Progress and custom vocabulary will not be saved."

CHOOSE_REVIEW_TEST = "Enter the name of the test to review (or 'ls' to list tests, 'menu' to return): "
AVAILABLE_TESTS = "Available tests:"
NO_TESTS_FOUND = "No saved tests found."
LISTING_TESTS_ERROR = "Could not retrieve test list. ({error})"
LOADING_TEST = "Loading test '{name}'..."
TEST_NOT_FOUND = "Test '{name}' not found or is empty."
TEST_LOAD_ERROR = "An error occurred with the database. ({error})"
REVIEW_ALL_CORRECT = "All words in this review test were answered correctly! Test '{name}' has been removed."
REVIEW_UPDATED = "Test '{name}' updated. Correctly answered words removed."
REVIEW_CLEARED = "All words in '{name}' answered or removed. Test deleted."
REVIEW_NOT_SAVED = "Test '{name}' was not updated."
REVIEW_UPDATE_ERROR = "Error updating review test. ({error})"

ENTER_SEARCH_TERM = "Enter search term: "
SEARCHING = "Searching..."
SEARCH_VOCAB_EMPTY = "Vocabulary is empty. Cannot perform search."
SEARCH_RESULTS_HEADER = "Search Results:"
NO_SEARCH_RESULTS = "No words found matching your search."
PRESS_ENTER_CONTINUE = "Press Enter to continue..."

PROMPT_LOAD_VOCAB_FILE = "Please select a '.json' vocabulary file."
VOCAB_FILE_SELECTED = "Selected file: {name}. Processing..."
VOCAB_FILE_LOAD_SUCCESS = "Successfully loaded and saved {count} words from file."
VOCAB_FILE_LOAD_INVALID = "Invalid file format. The file must be a JSON array of {{'ja': string, 'en': string}} objects. ({error})"
VOCAB_FILE_LOAD_ERROR = "Error loading vocabulary file: {error}"
VOCAB_FILE_NO_FILE = "No file selected. Returning to menu."
VOCAB_FILE_UNEXPECTED = "Not waiting for a vocabulary file. Choose option 4 from the menu first."

EXIT_MESSAGE = f"Thank you for using {APP_NAME}! Closing session."
SESSION_ENDED = "This session has ended. Reset to start again."
UNKNOWN_MODE = "Unknown mode or command: {command}"
