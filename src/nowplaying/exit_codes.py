"""Numeric process exit codes.

Each constant maps to an error category and is referenced by the matching
:class:`~nowplaying.exceptions.NowPlayingError` subclass, so shell wrappers
can tell failure classes apart without parsing stderr.

Example::

    $ nowplaying refresh
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- no refresh token, or the provider refused it
"""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_AUTH_FAILURE = 3
"""Signing in, exchanging a code, or refreshing a token failed."""

EXIT_FETCH_ERROR = 6
"""The provider's player endpoint could not be read."""

EXIT_INTERRUPTED = 130
"""The user pressed Ctrl-C."""
