"""nowplaying -- watch what a music provider account is playing, from the terminal.

The package signs a user in with OAuth2 Authorization Code + PKCE, keeps the
access token fresh across its lifetime, and polls the provider's
"currently playing" endpoint every few seconds.

Typical workflow::

    nowplaying login      # browser sign-in, tokens stored locally
    nowplaying watch      # poll and render until Ctrl-C

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware settings resolution.
    poll: The cancellable polling loop.
    lyrics: Best-effort lyrics lookup for the current track.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes.
    output: stdout/stderr formatting with Rich support.
"""

__version__ = "0.1.0"
