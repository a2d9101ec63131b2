"""Exceptions raised by the workflow engine."""


class WorkflowError(Exception):
    """Base exception for workflow engine errors."""

    def __init__(self, message: str, workflow_id: str | None = None):
        super().__init__(message)
        self.workflow_id = workflow_id


class DecompositionError(WorkflowError):
    """A workflow could not be lowered into rules (malformed node or transition)."""

    def __init__(
        self,
        message: str,
        workflow_id: str | None = None,
        node_id: str | None = None,
        transition_id: str | None = None,
    ):
        super().__init__(message, workflow_id=workflow_id)
        self.node_id = node_id
        self.transition_id = transition_id
