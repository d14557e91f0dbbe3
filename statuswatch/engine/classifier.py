"""
Status Classifier: probe result -> Status, child statuses -> rollup.

Both functions are pure and total. ``down`` is reserved for probes that got
no response or an out-of-range status code; everything else that looks
unhealthy is at most ``degraded``.
"""

from typing import Iterable, Optional

from pydantic import BaseModel, Field, model_validator

from statuswatch.models.enums import Status


class ClassifierPolicy(BaseModel):
    """
    Thresholds applied by ``classify``.

    Attributes:
        latency_degraded_ms: Latency strictly above this is degraded
        success_status_min: Lowest status code counted as a successful response
        success_status_max: Highest status code counted as a successful response
    """

    latency_degraded_ms: int = Field(default=1500, ge=0)
    success_status_min: int = Field(default=200, ge=1)
    success_status_max: int = Field(default=299, ge=1)

    @model_validator(mode="after")
    def validate_range(self) -> "ClassifierPolicy":
        if self.success_status_min > self.success_status_max:
            raise ValueError("success_status_min must not exceed success_status_max")
        return self

    def accepts(self, status_code: int) -> bool:
        return self.success_status_min <= status_code <= self.success_status_max


DEFAULT_POLICY = ClassifierPolicy()


def classify(
    latency_ms: int,
    status_code: int,
    error: Optional[str] = None,
    policy: ClassifierPolicy = DEFAULT_POLICY,
    reported_status: Optional[Status] = None,
) -> Status:
    """
    Classify one probe result.

    Args:
        latency_ms: Probe latency in milliseconds
        status_code: Probe status code, 0 when no response was received
        error: Probe error text, a soft-failure signal on a successful response
        policy: Thresholds to apply
        reported_status: Status claimed by the upstream, a soft-failure signal

    Returns:
        DOWN if no response or the status code is out of range, DEGRADED if
        slow or a soft-failure signal is present, otherwise OPERATIONAL
    """
    if status_code == 0 or not policy.accepts(status_code):
        return Status.DOWN

    if latency_ms > policy.latency_degraded_ms:
        return Status.DEGRADED
    if error:
        return Status.DEGRADED
    if reported_status is not None and reported_status is not Status.OPERATIONAL:
        return Status.DEGRADED

    return Status.OPERATIONAL


def rollup(statuses: Iterable[Status]) -> Status:
    """
    Roll child statuses up into one.

    ``down`` only when every child is down, ``degraded`` when any child is
    non-operational, ``operational`` otherwise (including no children).
    """
    statuses = list(statuses)
    if not statuses:
        return Status.OPERATIONAL

    down = sum(1 for status in statuses if status is Status.DOWN)
    if down == len(statuses):
        return Status.DOWN
    if any(status is not Status.OPERATIONAL for status in statuses):
        return Status.DEGRADED
    return Status.OPERATIONAL
