"""Hard-coded configuration constants not meant to be user-configurable."""

MAX_FILE_CHARS_PAGE = 500_000
MAX_CHILDREN_URIS_PAGE = 500
MAX_SEARCH_RESULTS_PAGE = 100
MAX_TERMINAL_CHARS = 100_000
HEURISTIC_MIN_TEXT_LENGTH = 20
