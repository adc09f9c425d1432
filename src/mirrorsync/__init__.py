"""mirrorsync - Mirror one source tree into several destinations with robocopy."""

__version__ = "0.1.0"
