"""Termination status of an integration and the errors raised on bad input.

The adaptive drivers never raise once integration has started. Whatever
happens, they return a :class:`QuadResult` carrying the best estimate
found so far together with a :class:`Status` describing how much it can be
trusted. Only malformed inputs, detected before the integrand is evaluated,
are raised as exceptions.
"""

import enum
from dataclasses import dataclass


class Status(enum.IntEnum):
    """How an integration terminated."""

    CONVERGED = 0
    ITERATION_LIMIT = 1
    ROUNDOFF = 2
    SINGULAR = 3
    EXTRAPOLATION_ROUNDOFF = 4
    DIVERGENT = 5
    INVALID_PARAMETER = 6
    TOLERANCE_UNREACHABLE = 7
    FAILED = 8

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    Status.CONVERGED: "requested tolerance reached",
    Status.ITERATION_LIMIT: "maximum number of subdivisions reached",
    Status.ROUNDOFF: "roundoff error prevents tolerance from being achieved",
    Status.SINGULAR: "bad integrand behavior found in the integration interval",
    Status.EXTRAPOLATION_ROUNDOFF: "roundoff error detected in the extrapolation table",
    Status.DIVERGENT: "integral is divergent, or slowly convergent",
    Status.INVALID_PARAMETER: "invalid input parameter",
    Status.TOLERANCE_UNREACHABLE: "tolerance cannot be achieved with given epsabs and epsrel",
    Status.FAILED: "could not integrate function",
}


# Internal error codes used while a driver runs. Code 3 only arises in the
# extrapolated drivers, when the table reported roundoff but no other flag
# was raised, and is reported as plain roundoff.
_ERROR_TYPES = {
    0: Status.CONVERGED,
    1: Status.ITERATION_LIMIT,
    2: Status.ROUNDOFF,
    3: Status.ROUNDOFF,
    4: Status.SINGULAR,
    5: Status.EXTRAPOLATION_ROUNDOFF,
    6: Status.DIVERGENT,
}


def classify(error_type: int) -> Status:
    """Map a driver's internal error code onto a :class:`Status`.

    Parameters
    ----------
    error_type : int
        0 no error, 1 iteration limit, 2 roundoff, 3 roundoff in the
        extrapolation bookkeeping, 4 bad integrand behaviour, 5 roundoff in
        the extrapolation table, 6 divergence. Anything else is a generic
        failure.

    Returns
    -------
    status : Status
    """
    return _ERROR_TYPES.get(error_type, Status.FAILED)


class InvalidParameterError(ValueError):
    """Malformed input, detected before any integrand evaluation."""

    status = Status.INVALID_PARAMETER


class ToleranceError(InvalidParameterError):
    """The requested tolerance is below what double precision can deliver."""

    status = Status.TOLERANCE_UNREACHABLE


@dataclass(frozen=True)
class QuadResult:
    """Outcome of an integration.

    Attributes
    ----------
    result : float
        Best estimate of the integral.
    abserr : float
        Estimate of the absolute error of `result`.
    status : Status
        How the integration terminated.
    iterations : int
        Number of subintervals in the final partition.
    neval : int
        Number of integrand evaluations.
    """

    result: float
    abserr: float
    status: Status
    iterations: int = 0
    neval: int = 0

    @property
    def success(self) -> bool:
        return self.status == Status.CONVERGED

    @property
    def message(self) -> str:
        return self.status.message


class IntegrationError(RuntimeError):
    """Raised by the high level interface when an integration did not converge.

    Parameters
    ----------
    quad_result : QuadResult
        The best estimate obtained, kept available on the exception.
    """

    def __init__(self, quad_result):
        self.result = quad_result
        super().__init__(
            f"Integration not converged properly: {quad_result.status.message} "
            f"(result={quad_result.result!r}, abserr={quad_result.abserr!r})."
        )
