"""High level interface to the adaptive integrators.

:func:`quad` picks a driver from the shape of the problem: break points
select :func:`~adaptquad.core.adaptive.qagp`, infinite bounds one of the
``qagi`` variants, and anything else
:func:`~adaptquad.core.adaptive.qags`. Settings that are reused across many
integrals can be kept in an :class:`Integrator`.
"""

import dataclasses
import logging
import math
from dataclasses import dataclass, asdict
from typing import Optional, Union, Callable

import numpy as np

from adaptquad.core import adaptive
from adaptquad.core.status import IntegrationError, InvalidParameterError
from adaptquad.core.workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass
class Integrator(object):
    """Integration settings, and a workspace to run them in.

    The workspace is reused between calls, so an instance must not be
    shared between threads.

    Attributes
    ----------
    epsabs : float
        Absolute error tolerance.
    epsrel : float
        Relative error tolerance.
    limit : int
        Maximum number of subintervals.
    rule : int or callable, optional
        Local quadrature kernel. If not set each driver uses its default
        (21 point Gauss-Kronrod on finite ranges, 15 point on infinite
        ones).
    """

    epsabs: float = 0.0
    epsrel: float = 1e-6
    limit: int = 1000
    rule: Optional[Union[int, Callable]] = None

    def __post_init__(self):
        if self.limit < 1:
            raise InvalidParameterError(f"limit must be positive (got {self.limit}).")

        self._workspace = Workspace(self.limit)

    @classmethod
    def from_dict(cls, d: dict) -> "Integrator":
        """Create an integrator from a dictionary of settings.

        Parameters
        ----------
        d : dict
            Any of the attributes of the class.

        Returns
        -------
        integrator : Integrator
        """
        known = {field.name for field in dataclasses.fields(cls)}
        unknown = set(d) - known

        if unknown:
            raise InvalidParameterError(
                f"Unknown integration settings: {', '.join(sorted(unknown))}."
            )

        return cls(**d)

    def to_dict(self) -> dict:
        return asdict(self)

    @property
    def workspace(self) -> Workspace:
        # Grow the workspace if the limit was raised since construction
        if self._workspace.limit < self.limit:
            self._workspace = Workspace(self.limit)

        return self._workspace

    def integrate(self, f, a, b, points=None, args=()):
        """Integrate `f` from `a` to `b`.

        Parameters
        ----------
        f : function f(x, *args)
            The function to integrate.
        a, b : float
            Integration limits, either may be infinite. If ``a > b`` the
            integral is taken with the opposite sign.
        points : array_like, optional
            Locations of singularities or discontinuities strictly between
            the limits. Only valid for finite limits.
        args : tuple, optional
            Extra arguments to pass to the integrand.

        Returns
        -------
        r : QuadResult
            The estimate, whether the integration converged or not.
        """
        if a > b:
            r = self.integrate(f, b, a, points=points, args=args)
            return dataclasses.replace(r, result=-r.result)

        kwargs = dict(
            epsabs=self.epsabs,
            epsrel=self.epsrel,
            limit=self.limit,
            workspace=self.workspace,
            args=args,
        )

        if self.rule is not None:
            kwargs["rule"] = self.rule

        finite = math.isfinite(a) and math.isfinite(b)

        if points is not None and len(points) > 0:
            if not finite:
                raise InvalidParameterError(
                    "Break points are only supported on finite ranges."
                )

            inner = np.sort(np.asarray(points, dtype=np.float64).ravel())
            inner = inner[(inner > a) & (inner < b)]
            pts = np.concatenate([[a], inner, [b]])

            return adaptive.qagp(f, pts, **kwargs)

        if finite:
            return adaptive.qags(f, a, b, **kwargs)

        if math.isinf(a) and math.isinf(b):
            return adaptive.qagi(f, **kwargs)

        if math.isinf(b):
            return adaptive.qagiu(f, a, **kwargs)

        return adaptive.qagil(f, b, **kwargs)


def quad(
    f,
    a,
    b,
    epsrel=1e-6,
    epsabs=0.0,
    points=None,
    limit=1000,
    args=(),
    fulloutput=False,
):
    """Integrate using adaptive Gauss-Kronrod quadrature.

    Parameters
    ----------
    f : function f(x, *args)
        The function to integrate. Optionally takes a set of extra
        arguments.
    a, b : scalar
        Integration limits. Either may be infinite.
    epsrel, epsabs : scalar, optional
        Relative and absolute integration tolerances.
    points : list, optional
        Locations of difficult points (singularities, discontinuities)
        within the integration range.
    limit : integer, optional
        Maximum number of subintervals.
    args : tuple/list, optional
        Optional arguments to pass to the integrand.
    fulloutput : boolean, optional
        Return the full :class:`~adaptquad.core.status.QuadResult` instead
        of just the value, and do not raise if the integration failed.

    Returns
    -------
    i : scalar or QuadResult
        Result of integration.

    Raises
    ------
    IntegrationError
        If the integration did not converge and `fulloutput` is not set.
    """
    integrator = Integrator(epsabs=epsabs, epsrel=epsrel, limit=limit)

    r = integrator.integrate(f, a, b, points=points, args=tuple(args))

    if fulloutput:
        return r

    if not r.success:
        logger.warning(
            "Integration over [%g, %g] not converged: %s", a, b, r.status.message
        )
        raise IntegrationError(r)

    return r.result
