from contextlib import contextmanager
import sys
import traceback
import services.logger as log

# Initialize logger
l = log.get_logger()


class BridgeError(Exception):
    """Base class for every error raised by the bridge."""


class ConfigError(BridgeError):
    """The config file is missing or does not validate."""


class ActionError(BridgeError):
    """A OneBot / game action failed, timed out, or the socket is gone."""


class GameError(BridgeError):
    """The game server is unreachable or refused the request."""


def _handle_uncaught_exceptions(exc_type, exc_value, exc_traceback):
    """Global exception handler for uncaught exceptions."""
    if issubclass(exc_type, KeyboardInterrupt):
        # Call default handler for keyboard interrupt (e.g. Ctrl+C)
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    l.critical(
        "Unhandled exception caught:\n"
        + ''.join(traceback.format_exception(exc_type, exc_value, exc_traceback))
    )


def install_excepthook():
    sys.excepthook = _handle_uncaught_exceptions


@contextmanager
def catch_and_log(context_info: str = ""):
    """
    Log any exception raised inside the block and swallow it.

    Used around fire-and-forget deliveries where a failed send must not
    abort the handler that triggered it.
    """
    try:
        yield
    except Exception as e:
        l.error(f"Exception caught in context '{context_info}': {e}")
