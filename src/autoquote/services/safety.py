"""Demo-mode destination safety gate.

Every outbound call passes through :func:`resolve_destination` before a call
record is created or the voice platform is contacted. The function is pure
with respect to policy: it performs no I/O, so the allow-list invariant can be
tested without network access. :class:`DestinationGate` adds logging around it.
"""

import logging
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Literal

from autoquote.config import Settings, parse_demo_numbers
from autoquote.errors import DestinationBlockedError

logger = logging.getLogger(__name__)

Strategy = Literal["round_robin", "first"]
Chooser = Callable[[Sequence[str]], str]


class DestinationOutcome(StrEnum):
    """How the gate treated a requested destination."""

    PASSTHROUGH = "PASSTHROUGH"
    ALLOWED = "ALLOWED"
    SUBSTITUTED = "SUBSTITUTED"
    BLOCKED = "BLOCKED"


@dataclass(frozen=True)
class DemoPolicy:
    """Immutable demo-mode policy."""

    enabled: bool
    allowed_numbers: tuple[str, ...]
    strategy: Strategy = "round_robin"
    strict: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "DemoPolicy":
        """Build a policy from application settings."""
        return cls(
            enabled=settings.demo_mode,
            allowed_numbers=parse_demo_numbers(settings.demo_to_numbers),
            strategy=settings.demo_number_strategy,
            strict=settings.scope_calls_to_demo_list,
        )


@dataclass(frozen=True)
class DestinationDecision:
    """Result of checking a destination against the policy."""

    requested: str
    outcome: DestinationOutcome
    destination: str | None
    reason: str | None = None

    @property
    def blocked(self) -> bool:
        return self.outcome is DestinationOutcome.BLOCKED

    @property
    def substituted(self) -> bool:
        return self.outcome is DestinationOutcome.SUBSTITUTED

    def require(self) -> str:
        """Return the destination or raise if the gate blocked it."""
        if self.destination is None:
            raise DestinationBlockedError(self.requested)
        return self.destination


def resolve_destination(
    requested: str, policy: DemoPolicy, choose: Chooser = random.choice
) -> DestinationDecision:
    """Map a requested destination to the one that may actually be dialed."""
    if not policy.enabled:
        return DestinationDecision(
            requested, DestinationOutcome.PASSTHROUGH, requested
        )

    if requested in policy.allowed_numbers:
        return DestinationDecision(requested, DestinationOutcome.ALLOWED, requested)

    if policy.strict:
        return DestinationDecision(
            requested,
            DestinationOutcome.BLOCKED,
            None,
            reason=f"{requested} is not in the demo allow-list",
        )

    if not policy.allowed_numbers:
        return DestinationDecision(
            requested,
            DestinationOutcome.BLOCKED,
            None,
            reason="no demo destinations configured",
        )

    if policy.strategy == "first":
        replacement = policy.allowed_numbers[0]
    else:
        replacement = choose(policy.allowed_numbers)
    # A chooser must never widen the allow-list.
    if replacement not in policy.allowed_numbers:
        replacement = policy.allowed_numbers[0]
    return DestinationDecision(
        requested,
        DestinationOutcome.SUBSTITUTED,
        replacement,
        reason=f"replaced {requested} with {replacement}",
    )


@dataclass
class DestinationGate:
    """Applies the demo policy and logs every substitution or rejection."""

    policy: DemoPolicy
    choose: Chooser = random.choice

    def resolve(self, requested: str) -> DestinationDecision:
        decision = resolve_destination(requested, self.policy, self.choose)
        if decision.blocked:
            logger.error(
                "BLOCKED: refusing to dial %s in DEMO_MODE (%s)",
                requested,
                decision.reason,
                extra={"requested": requested},
            )
        elif decision.substituted:
            logger.warning(
                "DEMO_MODE: replacing %s with %s",
                requested,
                decision.destination,
                extra={"requested": requested, "destination": decision.destination},
            )
        return decision
