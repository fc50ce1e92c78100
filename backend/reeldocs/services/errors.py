"""
Errors raised synchronously to callers of the job service.
"""


class NotFoundError(Exception):
    """Referenced video or job does not exist."""

    def __init__(self, kind: str, id: str):
        self.kind = kind
        self.id = id
        super().__init__(f"{kind.capitalize()} not found: {id}")


class InvalidStateError(Exception):
    """Operation not allowed in the current state (e.g. retrying a job that did not fail)."""

    pass
