"""Tests for the demo-mode destination gate."""

import logging

import pytest

from autoquote.config import Settings, parse_demo_numbers
from autoquote.errors import DestinationBlockedError
from autoquote.services.safety import (
    DemoPolicy,
    DestinationGate,
    DestinationOutcome,
    resolve_destination,
)

ALLOWED = ("+15550000001", "+15550000002")


def _policy(**overrides: object) -> DemoPolicy:
    values: dict[str, object] = {
        "enabled": True,
        "allowed_numbers": ALLOWED,
        "strategy": "round_robin",
        "strict": False,
    }
    values.update(overrides)
    return DemoPolicy(**values)  # type: ignore[arg-type]


def test_disabled_policy_passes_through() -> None:
    decision = resolve_destination("+14155550100", _policy(enabled=False))

    assert decision.outcome is DestinationOutcome.PASSTHROUGH
    assert decision.destination == "+14155550100"


def test_allow_listed_destination_is_unchanged() -> None:
    decision = resolve_destination(ALLOWED[1], _policy(strict=True))

    assert decision.outcome is DestinationOutcome.ALLOWED
    assert decision.destination == ALLOWED[1]


def test_strict_policy_blocks_unknown_destination() -> None:
    decision = resolve_destination("+14155550100", _policy(strict=True))

    assert decision.blocked
    assert decision.destination is None
    assert "+14155550100" in (decision.reason or "")
    with pytest.raises(DestinationBlockedError):
        decision.require()


def test_empty_allow_list_blocks_even_when_substituting() -> None:
    decision = resolve_destination("+14155550100", _policy(allowed_numbers=()))

    assert decision.outcome is DestinationOutcome.BLOCKED


def test_first_strategy_always_picks_first_entry() -> None:
    policy = _policy(strategy="first")

    destinations = {
        resolve_destination(f"+1415555010{i}", policy).destination for i in range(5)
    }

    assert destinations == {ALLOWED[0]}


def test_round_robin_uses_chooser() -> None:
    decision = resolve_destination(
        "+14155550100", _policy(), choose=lambda numbers: numbers[-1]
    )

    assert decision.substituted
    assert decision.destination == ALLOWED[-1]


def test_chooser_cannot_escape_allow_list() -> None:
    decision = resolve_destination(
        "+14155550100", _policy(), choose=lambda _numbers: "+19998887777"
    )

    assert decision.destination == ALLOWED[0]


@pytest.mark.parametrize("strict", [True, False])
@pytest.mark.parametrize("strategy", ["round_robin", "first"])
def test_demo_destination_is_always_allow_listed(strict: bool, strategy: str) -> None:
    policy = _policy(strict=strict, strategy=strategy)
    requested = ["+14155550100", "+442071838750", ALLOWED[0], "+61291234567"]

    for number in requested:
        decision = resolve_destination(number, policy)
        assert decision.destination is None or decision.destination in ALLOWED


def test_gate_logs_substitution_and_block(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="autoquote.services.safety")

    DestinationGate(_policy()).resolve("+14155550100")
    DestinationGate(_policy(strict=True)).resolve("+14155550101")

    levels = [record.levelno for record in caplog.records]
    assert logging.WARNING in levels
    assert logging.ERROR in levels


def test_policy_from_settings(settings: Settings) -> None:
    strict_settings = settings.model_copy(
        update={
            "scope_calls_to_demo_list": True,
            "demo_to_numbers": " +15550000001, ,+15550000001,+15550000003 ",
        }
    )

    policy = DemoPolicy.from_settings(strict_settings)

    assert policy.enabled
    assert policy.strict
    assert policy.allowed_numbers == ("+15550000001", "+15550000003")


def test_parse_demo_numbers_handles_none() -> None:
    assert parse_demo_numbers(None) == ()
