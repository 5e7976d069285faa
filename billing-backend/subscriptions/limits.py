# subscriptions/limits.py
"""
Plan-limit meter.

Pure: takes the live usage counts and the plan limits, returns where the
user stands for one resource. ``-1`` limits are unlimited.
"""
import math
from dataclasses import dataclass
from typing import Union

from billing.records import PlanLimits, UsageCounts

RESOURCES = ("clients", "invoices", "pdfs", "emails")

STATUS_OK = "ok"
STATUS_NEAR = "near"
STATUS_AT = "at"

UNLIMITED = -1


@dataclass(frozen=True)
class LimitCheck:
    resource: str
    status: str
    current: int
    limit: int
    remaining: Union[int, float]  # math.inf when unlimited

    @property
    def allowed(self) -> bool:
        return self.status != STATUS_AT

    @property
    def unlimited(self) -> bool:
        return self.limit == UNLIMITED


def evaluate(resource: str, usage: UsageCounts, limits: PlanLimits) -> LimitCheck:
    if resource not in RESOURCES:
        raise ValueError(f"Unknown metered resource: {resource}")

    current = int(usage.for_resource(resource))
    limit = int(limits.for_resource(resource))

    if limit == UNLIMITED:
        return LimitCheck(resource, STATUS_OK, current, limit, math.inf)
    if limit < 0:
        raise ValueError(f"Invalid limit {limit} for {resource}")

    remaining = max(limit - current, 0)
    if current >= limit:
        status = STATUS_AT
    elif current * 5 >= limit * 4:  # 80%
        status = STATUS_NEAR
    else:
        status = STATUS_OK
    return LimitCheck(resource, status, current, limit, remaining)
