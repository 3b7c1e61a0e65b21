"""Tests for command parsing and validation."""

import pytest

from cafe_controller.commands import (
    CommandValidator,
    DurationTooLongError,
    DurationTooShortError,
    StockUnavailableError,
    UnknownCommandError,
    parse_command,
)
from cafe_controller.core.models import Command, CommandKind
from cafe_controller.core.products import ProductCatalog


# ============================================================================
# Parser
# ============================================================================


@pytest.mark.parametrize(
    "line,kind,duration",
    [
        ("S2.5", CommandKind.SUGAR, 2.5),
        ("s2.5", CommandKind.SUGAR, 2.5),
        ("W10", CommandKind.WATER, 10.0),
        ("C 1.25", CommandKind.COFFEE, 1.25),
        ("i3", CommandKind.ICED_TEA, 3.0),
        ("G0.5", CommandKind.GREEN_TEA, 0.5),
        ("U1", CommandKind.CUP, 1.0),
        ("   S4", CommandKind.SUGAR, 4.0),
        ("S2.5\r", CommandKind.SUGAR, 2.5),
    ],
)
def test_parse_recognised_prefixes(catalog, line, kind, duration) -> None:
    command = parse_command(line, catalog)

    assert command.kind is kind
    assert command.requested_duration_seconds == pytest.approx(duration)


@pytest.mark.parametrize("line", ["", "   ", "\t", None])
def test_parse_blank_line_yields_none_kind(catalog, line) -> None:
    command = parse_command(line, catalog)

    assert command.kind is CommandKind.NONE
    assert command.is_empty


def test_parse_unknown_prefix(catalog) -> None:
    command = parse_command("X3", catalog)

    assert command.kind is CommandKind.UNKNOWN
    assert command.raw_text == "X3"


@pytest.mark.parametrize("line", ["S", "Sabc", "W  ", "C-"])
def test_parse_missing_or_garbage_duration_is_zero_not_none(catalog, line) -> None:
    command = parse_command(line, catalog)

    assert command.kind.is_dispensable
    assert command.requested_duration_seconds == 0.0


def test_parse_ignores_trailing_text_after_number(catalog) -> None:
    command = parse_command("S2.5sec", catalog)

    assert command.requested_duration_seconds == pytest.approx(2.5)


def test_parse_keeps_trimmed_raw_text(catalog) -> None:
    command = parse_command("  W1.5  ", catalog)

    assert command.raw_text == "W1.5"


def test_parse_is_pure(catalog) -> None:
    first = parse_command(" g 0.75", catalog)
    second = parse_command(" g 0.75", catalog)

    assert first == second


def test_parse_uses_configured_prefixes() -> None:
    catalog = ProductCatalog().with_overrides(prefixes={CommandKind.CUP: "K"})

    assert parse_command("K1", catalog).kind is CommandKind.CUP
    assert parse_command("U1", catalog).kind is CommandKind.UNKNOWN


# ============================================================================
# Validator
# ============================================================================


@pytest.fixture
def validator(catalog) -> CommandValidator:
    return CommandValidator(catalog)


def test_validate_accepts_in_bounds_command(validator) -> None:
    result = validator.validate(Command(CommandKind.SUGAR, 2.5, "S2.5"))

    assert result.valid is True
    assert result.reason is None


def test_validate_unknown_command(validator) -> None:
    result = validator.validate(Command(CommandKind.UNKNOWN, 0.0, "X3"))

    assert result.valid is False
    assert result.reason == "unknown command: X3"
    assert isinstance(result.error, UnknownCommandError)
    assert result.code == "unknown_command"


@pytest.mark.parametrize("duration", [0.0, 0.005, -1.0])
def test_validate_duration_too_short(validator, duration) -> None:
    result = validator.validate(Command(CommandKind.WATER, duration, f"W{duration}"))

    assert result.valid is False
    assert result.reason.startswith("duration too short")
    assert isinstance(result.error, DurationTooShortError)


def test_validate_minimum_duration_is_inclusive(validator) -> None:
    result = validator.validate(Command(CommandKind.WATER, 0.01, "W0.01"))

    assert result.valid is True


@pytest.mark.parametrize(
    "kind,duration",
    [(CommandKind.SUGAR, 10.5), (CommandKind.WATER, 30.01)],
)
def test_validate_duration_ceiling(validator, kind, duration) -> None:
    result = validator.validate(Command(kind, duration, "x"))

    assert result.valid is False
    assert result.reason.startswith(f"duration too long for {kind.value}")
    assert isinstance(result.error, DurationTooLongError)
    assert result.error.kind is kind


def test_validate_ceiling_is_inclusive(validator) -> None:
    assert validator.validate(Command(CommandKind.SUGAR, 10.0, "S10")).valid


def test_validate_kinds_without_ceiling_are_unbounded(validator) -> None:
    assert validator.validate(Command(CommandKind.COFFEE, 600.0, "C600")).valid
    assert validator.validate(Command(CommandKind.CUP, 120.0, "U120")).valid


def test_validate_configured_ceiling() -> None:
    catalog = ProductCatalog().with_overrides(
        limits={CommandKind.COFFEE: 5.0, CommandKind.SUGAR: None}
    )
    validator = CommandValidator(catalog)

    assert not validator.validate(Command(CommandKind.COFFEE, 6.0, "C6")).valid
    assert validator.validate(Command(CommandKind.SUGAR, 60.0, "S60")).valid


def test_validate_does_not_mutate_command(validator) -> None:
    command = Command(CommandKind.SUGAR, 0.0, "S")
    validator.validate(command)

    assert command == Command(CommandKind.SUGAR, 0.0, "S")


def test_check_availability_rejects_empty_stock(validator) -> None:
    result = validator.check_availability(CommandKind.SUGAR, lambda kind: False)

    assert result.valid is False
    assert result.reason == "Sugar stock is too low to dispense!"
    assert isinstance(result.error, StockUnavailableError)


def test_check_availability_reports_tank_for_water(validator) -> None:
    result = validator.check_availability(CommandKind.WATER, lambda kind: False)

    assert result.reason == "Water tank is too low to dispense!"


def test_check_availability_skips_cup(validator) -> None:
    calls = []

    def probe(kind):
        calls.append(kind)
        return False

    result = validator.check_availability(CommandKind.CUP, probe)

    assert result.valid is True
    assert calls == []


def test_validate_rejects_overflowing_duration(catalog, validator) -> None:
    command = parse_command("C1e400", catalog)

    result = validator.validate(command)

    assert command.requested_duration_seconds == float("inf")
    assert result.valid is False
    assert result.code == "invalid_duration"
    assert result.reason == "invalid duration: C1e400"


def test_validate_treats_spelled_out_infinity_as_missing_duration(
    catalog, validator
) -> None:
    command = parse_command("Cinf", catalog)

    result = validator.validate(command)

    assert command.requested_duration_seconds == 0.0
    assert isinstance(result.error, DurationTooShortError)
