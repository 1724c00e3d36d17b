"""Build metadata for the collector agent."""

_VERSION = "latest"
_GIT_HASH = "unknown"
_DATE = "unknown"


def version() -> str:
    """Return the semantic version of the agent, or "latest" by default."""
    return _VERSION


def git_hash() -> str:
    """Return the commit hash the agent was built from."""
    return _GIT_HASH


def date() -> str:
    """Return the date the agent was built."""
    return _DATE