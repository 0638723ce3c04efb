"""
Error types raised by the planner core.

Every error carries enough context (token, identifier, entity kind) for the
caller to print an actionable message.
"""


class PlannerError(Exception):
    """Base class for all planner errors."""
    pass


class ParseError(PlannerError):
    """A raw token did not match the grammar of the expected expression."""

    def __init__(self, token, expected, detail=""):
        self.token = token
        self.expected = expected
        self.detail = detail
        msg = f"Invalid {expected}: '{token}'."
        if detail:
            msg += f" {detail}"
        super().__init__(msg)


class ValidationError(PlannerError):
    """An argument slot is missing, surplus or out of grammar."""

    def __init__(self, message, usage=""):
        self.usage = usage
        if usage:
            message = f"{message}\nUsage: {usage}"
        super().__init__(message)


class NotFound(PlannerError):
    def __init__(self, kind, entity_id):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} with id {entity_id} does not exist.")


class ReferenceConflict(PlannerError):
    """Deleting a card that tasks or events still reference."""

    def __init__(self, card_id, dependents):
        self.card_id = card_id
        self.dependents = list(dependents)
        names = ", ".join(f"{kind} {eid}" for kind, eid in self.dependents)
        super().__init__(f"card {card_id} is still referenced by: {names}.")


class SchedulingConflict(PlannerError):
    """Two event instances overlap on the same day."""

    def __init__(self, day, first, second):
        self.day = day
        self.first = first
        self.second = second
        super().__init__(
            f"Events {first.id} ('{first.name}') and {second.id} ('{second.name}') "
            f"overlap on {day.isoformat()}."
        )


class Unschedulable(PlannerError):
    """A task that could not be placed. Collected by the scheduler, not raised."""

    def __init__(self, task_id, name, reason):
        self.task_id = task_id
        self.name = name
        self.reason = reason
        super().__init__(f"task {task_id} ('{name}') could not be scheduled: {reason}")

    def __eq__(self, other):
        if not isinstance(other, Unschedulable):
            return NotImplemented
        return (self.task_id, self.reason) == (other.task_id, other.reason)

    def __hash__(self):
        return hash((self.task_id, self.reason))


class ConfigInvalid(PlannerError):
    def __init__(self, key, reason):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for '{key}': {reason}")
