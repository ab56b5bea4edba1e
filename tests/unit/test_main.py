"""Unit tests for exit-code routing at the CLI boundary."""

from __future__ import annotations

import pytest

from terraspec.config import ConfigLoadError
from terraspec.domain.errors import FieldViolation, SchemaViolation, TierBuildError, UnknownSlot
from terraspec.main import ExitCode, _normalize_exit_code, route_exception
from terraspec.schema.catalog import CatalogLoadError
from terraspec.ui.manifest import ManifestError


def _schema_violation() -> SchemaViolation:
    return SchemaViolation(
        "aws_vpc",
        [FieldViolation(path="cidr_block", constraint="pattern", actual="x", message="bad")],
    )


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (_schema_violation(), ExitCode.VALIDATION_REJECTED),
        (UnknownSlot("architecture.stack.shop", "network", ()), ExitCode.VALIDATION_REJECTED),
        (ConfigLoadError("config file not found"), ExitCode.CONFIG_ERROR),
        (CatalogLoadError("bad catalog"), ExitCode.CONFIG_ERROR),
        (ManifestError("bad manifest"), ExitCode.CONFIG_ERROR),
        (FileNotFoundError("absent"), ExitCode.CONFIG_ERROR),
        (RuntimeError("boom"), ExitCode.INTERNAL_ERROR),
    ],
)
def test_route_exception(exc: BaseException, expected: ExitCode) -> None:
    assert route_exception(exc) is expected


def test_route_exception_follows_the_cause_chain() -> None:
    try:
        try:
            raise _schema_violation()
        except SchemaViolation as inner:
            raise TierBuildError("architecture.web_application.shop", "network", inner) from inner
    except TierBuildError as outer:
        wrapped = outer

    assert route_exception(wrapped) is ExitCode.VALIDATION_REJECTED

    try:
        try:
            raise ConfigLoadError("unreadable")
        except ConfigLoadError as inner:
            raise RuntimeError("while loading") from inner
    except RuntimeError as outer:
        runtime = outer

    assert route_exception(runtime) is ExitCode.CONFIG_ERROR


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, 0), (0, 0), (1, 1), (2, 2), (4, 4), (3, 4), ("fatal", 4)],
)
def test_normalize_exit_code(raw: object, expected: int) -> None:
    assert _normalize_exit_code(raw) == expected
