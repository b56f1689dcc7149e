"""
Helpers for silencing native audio libraries (ALSA/JACK chatter from PortAudio).
"""
import os
from contextlib import contextmanager
from functools import wraps

# PortAudio probes JACK on every host API scan unless told not to
os.environ.setdefault("JACK_NO_START_SERVER", "1")


@contextmanager
def suppressed_native_stderr():
    """
    Redirect file descriptor 2 to /dev/null for the duration of the block.

    Native libraries write straight to the descriptor, so swapping sys.stderr
    is not enough.
    """
    try:
        saved_fd = os.dup(2)
        null_fd = os.open(os.devnull, os.O_WRONLY)
        os.dup2(null_fd, 2)
        os.close(null_fd)
    except OSError:
        saved_fd = None

    try:
        yield
    finally:
        if saved_fd is not None:
            try:
                os.dup2(saved_fd, 2)
                os.close(saved_fd)
            except OSError:
                pass


def with_suppressed_audio_warnings(func):
    """Decorator form of suppressed_native_stderr()."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        with suppressed_native_stderr():
            return func(*args, **kwargs)

    return wrapper
