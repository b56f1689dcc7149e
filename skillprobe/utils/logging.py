"""
Logging setup for the interview room.

Everything goes to the log file; the terminal only shows what the console
entry point prints itself, plus critical failures.
"""
import os
import logging
from typing import Iterable, Tuple

# Chatty third-party loggers and the level they are capped at
NOISY_LOGGERS: Tuple[Tuple[str, int], ...] = (
    ("websockets", logging.WARNING),   # one debug line per websocket frame
    ("google_genai", logging.INFO),
    ("urllib3", logging.WARNING),
)


def setup_logging(log_file_path: str,
                  level: str = "DEBUG",
                  noisy: Iterable[Tuple[str, int]] = NOISY_LOGGERS) -> str:
    """
    Route logs to a file, leaving the console to the interview prompts.

    Args:
        log_file_path: Full path to the log file; its directory is created
        level: Level name for the file handler (unknown names mean DEBUG)
        noisy: (logger name, max level) pairs to cap

    Returns:
        Path to the log file
    """
    directory = os.path.dirname(log_file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.DEBUG)

    to_file = logging.FileHandler(log_file_path, mode='w', encoding='utf-8')
    to_file.setLevel(getattr(logging, level.upper(), logging.DEBUG))
    to_file.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s - %(message)s'))
    root.addHandler(to_file)

    to_console = logging.StreamHandler()
    to_console.setLevel(logging.CRITICAL)
    to_console.setFormatter(logging.Formatter('%(message)s'))
    root.addHandler(to_console)

    for name, cap in noisy:
        logging.getLogger(name).setLevel(cap)

    return log_file_path
