"""Tests for the root exception hierarchy."""

from __future__ import annotations

from herald_core.primitives import (
    ConcurrencyError,
    HeraldError,
    InfrastructureError,
    LockAcquisitionError,
    ResourceIdentifier,
    ValidationError,
)


def test_validation_error_from_string() -> None:
    err = ValidationError("bad input")
    assert err.errors == {"__root__": ["bad input"]}


def test_validation_error_from_dict() -> None:
    err = ValidationError({"tenant_id": ["is required"]})
    assert err.errors["tenant_id"] == ["is required"]
    assert isinstance(err, HeraldError)


def test_validation_error_empty() -> None:
    assert ValidationError().errors == {}


def test_lock_acquisition_error_message() -> None:
    resource = ResourceIdentifier("DeliveryTask", "t-1")
    err = LockAcquisitionError(resource, 2.0, reason="busy")

    assert isinstance(err, ConcurrencyError)
    assert "DeliveryTask:t-1" in str(err)
    assert "busy" in str(err)


def test_infrastructure_error_is_herald_error() -> None:
    assert issubclass(InfrastructureError, HeraldError)
