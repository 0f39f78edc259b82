"""RepoTracker exception hierarchy.

Every error raised while tracking a single dependency derives from
TrackerError, so the orchestrator can isolate one dependency's failure
from the rest of the run.
"""


class TrackerError(Exception):
    """Base exception for all RepoTracker errors."""


class ConfigError(TrackerError):
    """Invalid configuration value."""


class QueryInputError(TrackerError):
    """The dependency enumeration could not be read or decoded."""


class ResolutionError(TrackerError):
    """A dependency record could not be turned into a repo coordinate."""


class ResolutionFailed(ResolutionError):
    """The declared identity could not be mapped to a remote at all."""


class UnsupportedHost(ResolutionError):
    """The dependency resolved to a hosting system other than git."""


class NoRecognizedURL(ResolutionError):
    """None of an archive's candidate URLs matched a known host pattern."""


class UnsupportedRuleClass(ResolutionError):
    """The declaration kind is not one the tracker understands."""

    def __init__(self, rule_class: str, name: str = "") -> None:
        super().__init__(f"unsupported rule class {rule_class!r} for {name or '<unnamed>'}")
        self.rule_class = rule_class
        self.name = name


class GitCommandFailed(TrackerError):
    """A git subprocess exited non-zero."""

    def __init__(self, command: list[str], output: str, returncode: int | None = None) -> None:
        cmd = " ".join(command)
        super().__init__(f"`{cmd}` failed (exit {returncode}) with output {output.strip()!r}")
        self.command = command
        self.output = output
        self.returncode = returncode


class SyncFailed(GitCommandFailed):
    """Cloning or refreshing a mirror failed."""


class RevisionNotFound(TrackerError):
    """The pinned revision does not exist in the mirror's history."""

    def __init__(self, revision: str, url: str = "") -> None:
        super().__init__(f"revision {revision!r} not found in {url or 'mirror'}")
        self.revision = revision
        self.url = url


class MalformedLogRecord(TrackerError):
    """A git log record does not match the expected field layout."""

    def __init__(self, record: str, reason: str = "wrong field count") -> None:
        super().__init__(f"log record {record!r} is malformed: {reason}")
        self.record = record
