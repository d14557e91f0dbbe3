"""Transition Detector: compares a service's previous and current status."""

from typing import Optional

from statuswatch.models.enums import Status, Transition


def detect(previous: Optional[Status], current: Status) -> Transition:
    """
    Decide whether a service crossed the ``down`` boundary.

    A service with no previous check never transitions. Moving between
    operational and degraded is not a transition.

    Example:
        >>> detect(Status.DEGRADED, Status.DOWN)
        <Transition.ONSET: 'onset'>
        >>> detect(Status.DOWN, Status.DEGRADED)
        <Transition.RECOVERY: 'recovery'>
    """
    if previous is None:
        return Transition.NONE

    if not previous.is_down and current.is_down:
        return Transition.ONSET
    if previous.is_down and not current.is_down:
        return Transition.RECOVERY
    return Transition.NONE
