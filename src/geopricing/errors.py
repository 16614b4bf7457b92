"""Typed failures raised by the geopricing core."""

from __future__ import annotations


class GeopricingError(Exception):
    """Base class; every failure is scoped to the request that raised it."""

    code = "GEOPRICING_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class InvalidRequest(GeopricingError):
    code = "INVALID_REQUEST"
    status_code = 400


class GeocodeFailure(GeopricingError):
    """The address could not be resolved; the caller should refine it."""

    code = "GEOCODE_FAILED"
    status_code = 422


class RoutingFailure(GeopricingError):
    """Travel-time provider timed out, ran out of quota or found no route."""

    code = "ROUTING_FAILED"
    status_code = 503
    retryable = True


class ConfigurationMissing(GeopricingError):
    code = "CONFIGURATION_MISSING"
    status_code = 404


class MalformedConfig(GeopricingError):
    code = "MALFORMED_CONFIG"
    status_code = 422

    def __init__(self, message: str, problems: list[str] | None = None) -> None:
        super().__init__(message)
        self.problems = problems or []


class ConfigVersionConflict(GeopricingError):
    code = "VERSION_CONFLICT"
    status_code = 409


class PersistenceFailure(GeopricingError):
    code = "PERSISTENCE_FAILED"
    status_code = 503
    retryable = True
