"""Structural errors that abort a learn run before any task executes."""


class LearnError(Exception):
    """Base class for fatal learn errors."""


class PartitionError(LearnError):
    """Raised when the root path is missing, not a directory, or unreadable."""


class SchedulerError(LearnError):
    """Raised when the worker pool cannot start.

    Covers a non-positive worker count and an empty task list. Per-task
    failures never raise; they are recorded as warnings instead.
    """
