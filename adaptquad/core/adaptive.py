"""Globally adaptive integration drivers.

All drivers repeatedly bisect the subinterval with the largest error
estimate until the total error drops below
``max(epsabs, epsrel * |integral|)``, the subdivision budget `limit` is
exhausted, or a pathology of the integrand is detected.

=========  ===========================================================
``qag``    plain adaptive bisection
``qags``   bisection with epsilon-algorithm extrapolation, for integrable
           singularities and discontinuities
``qagp``   as ``qags``, with the integration range split at known
           difficult points before the first bisection
``qagiu``  ``qags`` over ``[a, +inf)``
``qagil``  ``qags`` over ``(-inf, b]``
``qagi``   ``qags`` over ``(-inf, +inf)``
=========  ===========================================================

Every driver returns a :class:`~adaptquad.core.status.QuadResult`, which
carries the best estimate found even when the integration failed. Invalid
arguments raise :class:`~adaptquad.core.status.InvalidParameterError`
before the integrand is ever called.
"""

import logging
import math

import numpy as np

from adaptquad.core.extrapolation import ExtrapolationTable
from adaptquad.core.status import (
    InvalidParameterError,
    QuadResult,
    Status,
    ToleranceError,
    classify,
)
from adaptquad.core.workspace import Workspace
from adaptquad.util import kronrod, machine
from adaptquad.util.machine import subinterval_too_small

logger = logging.getLogger(__name__)


class _Integrand(object):
    # Binds the caller's extra arguments and counts evaluations.

    def __init__(self, f, args=()):
        if not callable(f):
            raise InvalidParameterError("Integrand must be callable.")

        if isinstance(args, list):
            args = tuple(args)
        elif not isinstance(args, tuple):
            args = (args,)

        self.f = f
        self.args = args
        self.neval = 0

    def __call__(self, x):
        self.neval += 1
        return self.f(x, *self.args)


def _get_kernel(rule):
    try:
        return kronrod.get_rule(rule)
    except ValueError as e:
        raise InvalidParameterError(str(e)) from None


def _check_workspace(workspace, limit):
    if limit < 1:
        raise InvalidParameterError(f"Iteration limit must be positive (got {limit}).")

    if workspace is None:
        return Workspace(limit)

    if limit > workspace.limit:
        raise InvalidParameterError(
            f"Iteration limit ({limit}) exceeds available workspace ({workspace.limit})."
        )

    return workspace


def _check_tolerance(epsabs, epsrel):
    if epsabs <= 0 and epsrel < machine.tolerance_floor():
        raise ToleranceError(
            "Tolerance cannot be achieved with given epsabs and epsrel "
            f"(epsabs={epsabs}, epsrel={epsrel})."
        )


def _check_finite(*bounds):
    for x in bounds:
        if not math.isfinite(x):
            raise InvalidParameterError(
                f"Integration bound {x} is not finite, use qagi, qagiu or qagil."
            )


def _test_positivity(result, resabs):
    return abs(result) >= (1 - 50 * machine.eps) * resabs


def _done(name, result, abserr, status, workspace, integrand):
    logger.debug(
        "%s finished after %i subintervals and %i evaluations: %s "
        "(result=%g, abserr=%g)",
        name,
        workspace.size,
        integrand.neval,
        status.name,
        result,
        abserr,
    )

    return QuadResult(
        result=float(result),
        abserr=float(abserr),
        status=status,
        iterations=workspace.size,
        neval=integrand.neval,
    )


def qag(
    f,
    a,
    b,
    epsabs=0.0,
    epsrel=1e-10,
    limit=1000,
    rule=2,
    workspace=None,
    args=(),
):
    """Integrate `f` over `[a, b]` by plain adaptive bisection.

    Parameters
    ----------
    f : function f(x, *args)
        The integrand.
    a, b : float
        Integration limits.
    epsabs, epsrel : float, optional
        Absolute and relative error tolerances.
    limit : int, optional
        Maximum number of subintervals.
    rule : int or callable, optional
        Local quadrature kernel, either a key into
        :data:`adaptquad.util.kronrod.RULES` (default: 21 point
        Gauss-Kronrod) or a callable ``rule(f, a, b)`` returning
        ``(result, abserr, resabs, resasc)``.
    workspace : Workspace, optional
        Workspace to reuse. Must hold at least `limit` subintervals. A new
        one is created if not given.
    args : tuple/list, optional
        Extra arguments passed to the integrand.

    Returns
    -------
    r : QuadResult
    """
    q = _get_kernel(rule)
    workspace = _check_workspace(workspace, limit)
    _check_tolerance(epsabs, epsrel)
    _check_finite(a, b)

    integrand = _Integrand(f, args)

    workspace.initialise(a, b)

    # Perform the first integration
    result0, abserr0, resabs0, resasc0 = q(integrand, a, b)

    workspace.set_initial_result(result0, abserr0)

    logger.debug("qag initial estimate %g +/- %g", result0, abserr0)

    # Test on accuracy
    tolerance = max(epsabs, epsrel * abs(result0))

    round_off = 50 * machine.eps * resabs0

    if abserr0 <= round_off and abserr0 > tolerance:
        return _done("qag", result0, abserr0, Status.ROUNDOFF, workspace, integrand)
    elif (abserr0 <= tolerance and abserr0 != resasc0) or abserr0 == 0.0:
        return _done("qag", result0, abserr0, Status.CONVERGED, workspace, integrand)
    elif limit == 1:
        return _done(
            "qag", result0, abserr0, Status.ITERATION_LIMIT, workspace, integrand
        )

    area = result0
    errsum = abserr0

    error_type = 0
    roundoff_type1 = 0
    roundoff_type2 = 0

    iteration = 1

    while True:
        # Bisect the subinterval with the largest error estimate
        a_i, b_i, r_i, e_i = workspace.retrieve()

        a1 = a_i
        b1 = 0.5 * (a_i + b_i)
        a2 = b1
        b2 = b_i

        area1, error1, resabs1, resasc1 = q(integrand, a1, b1)
        area2, error2, resabs2, resasc2 = q(integrand, a2, b2)

        area12 = area1 + area2
        error12 = error1 + error2

        errsum = errsum + error12 - e_i
        area = area + area12 - r_i

        if resasc1 != error1 and resasc2 != error2:
            delta = r_i - area12

            if abs(delta) <= 1.0e-5 * abs(area12) and error12 >= 0.99 * e_i:
                roundoff_type1 += 1

            if iteration >= 10 and error12 > e_i:
                roundoff_type2 += 1

        tolerance = max(epsabs, epsrel * abs(area))

        if errsum > tolerance:
            if roundoff_type1 >= 6 or roundoff_type2 >= 20:
                error_type = 2

            # Bad integrand behaviour at a point of the integration range
            if subinterval_too_small(a1, a2, b2):
                error_type = 4

        workspace.update(a1, b1, area1, error1, a2, b2, area2, error2)

        iteration += 1

        if not (iteration < limit and error_type == 0 and errsum > tolerance):
            break

    result = workspace.sum_results()

    if errsum <= tolerance:
        status = Status.CONVERGED
    elif error_type:
        status = classify(error_type)
    elif iteration == limit:
        status = Status.ITERATION_LIMIT
    else:
        status = Status.FAILED

    return _done("qag", result, errsum, status, workspace, integrand)


def _extrapolate(
    name,
    fn,
    integrand,
    q,
    workspace,
    epsabs,
    epsrel,
    limit,
    result0,
    resabs0,
    errsum,
    iteration,
    seeded,
):
    # Bisection with extrapolation, shared by qags and qagp. The workspace
    # must already hold the initial partition, with `errsum` the sum of its
    # error estimates and `iteration` the number of subintervals minus one.
    # For a `seeded` (qagp) run the bookkeeping for extrapolation starts at
    # once, otherwise it is set up after the first bisection.

    table = ExtrapolationTable()
    table.append(result0)

    area = result0

    res_ext = result0
    err_ext = machine.huge

    if seeded:
        error_over_large_intervals = errsum
        ertest = max(epsabs, epsrel * abs(result0))
    else:
        error_over_large_intervals = 0.0
        ertest = 0.0

    correc = 0.0
    ktmin = 0

    roundoff_type1 = 0
    roundoff_type2 = 0
    roundoff_type3 = 0

    error_type = 0
    error_type2 = 0

    extrapolate = False
    disallow_extrapolation = False

    positive_integrand = _test_positivity(result0, resabs0)

    tolerance = ertest

    def compute_result(error_type):
        # Report the plain sum over the partition
        return _done(
            name,
            workspace.sum_results(),
            errsum,
            classify(error_type),
            workspace,
            integrand,
        )

    while True:
        # Bisect the subinterval with the largest error estimate
        a_i, b_i, r_i, e_i = workspace.retrieve()

        current_level = workspace.level[workspace.i] + 1

        a1 = a_i
        b1 = 0.5 * (a_i + b_i)
        a2 = b1
        b2 = b_i

        iteration += 1

        area1, error1, resabs1, resasc1 = q(fn, a1, b1)
        area2, error2, resabs2, resasc2 = q(fn, a2, b2)

        area12 = area1 + area2
        error12 = error1 + error2
        last_e_i = e_i

        # Improve previous approximations to the integral and test for
        # accuracy. The expressions are grouped so that they round the same
        # way as the classic implementation.
        errsum = errsum + error12 - e_i
        area = area + area12 - r_i

        tolerance = max(epsabs, epsrel * abs(area))

        if resasc1 != error1 and resasc2 != error2:
            delta = r_i - area12

            if abs(delta) <= 1.0e-5 * abs(area12) and error12 >= 0.99 * e_i:
                if not extrapolate:
                    roundoff_type1 += 1
                else:
                    roundoff_type2 += 1

            if iteration > 10 and error12 > e_i:
                roundoff_type3 += 1

        # Test for roundoff and eventually set error flag
        if roundoff_type1 + roundoff_type2 >= 10 or roundoff_type3 >= 20:
            error_type = 2

        if roundoff_type2 >= 5:
            error_type2 = 1

        # Bad integrand behaviour at a point of the integration range
        if subinterval_too_small(a1, a2, b2):
            error_type = 4

        workspace.update(a1, b1, area1, error1, a2, b2, area2, error2)

        if errsum <= tolerance:
            return compute_result(0)

        if error_type:
            break

        if iteration >= limit - 1:
            error_type = 1
            break

        if not seeded and iteration == 2:
            error_over_large_intervals = errsum
            ertest = tolerance
            table.append(area)
            continue

        if disallow_extrapolation:
            continue

        error_over_large_intervals += -last_e_i

        if current_level < workspace.maximum_level:
            error_over_large_intervals += error12

        if not extrapolate:
            # Keep bisecting while the next interval is not the smallest
            if workspace.large_interval():
                continue

            extrapolate = True
            workspace.nrmax = 1

        # The smallest interval has the largest error. Before bisecting it,
        # work down the error over the larger intervals and extrapolate.
        if not error_type2 and error_over_large_intervals > ertest:
            if workspace.increase_nrmax():
                continue

        table.append(area)

        if not seeded or table.n > 2:
            reseps, abseps = table.transform()

            ktmin += 1

            if ktmin > 5 and err_ext < 0.001 * errsum:
                error_type = 5

            if abseps < err_ext:
                ktmin = 0
                err_ext = abseps
                res_ext = reseps
                correc = error_over_large_intervals
                ertest = max(epsabs, epsrel * abs(reseps))

                logger.debug(
                    "%s extrapolated %g +/- %g after %i subintervals",
                    name,
                    res_ext,
                    err_ext,
                    workspace.size,
                )

                if err_ext <= ertest:
                    break

            # Prepare bisection of the smallest interval
            if table.n == 1:
                disallow_extrapolation = True

            if error_type == 5:
                break

        # Work on the interval with the largest error
        workspace.reset_nrmax()
        extrapolate = False
        error_over_large_intervals = errsum

        if iteration >= limit:
            break

    if err_ext == machine.huge:
        return compute_result(error_type)

    if error_type or error_type2:
        if error_type2:
            err_ext += correc

        if error_type == 0:
            error_type = 3

        if res_ext != 0.0 and area != 0.0:
            if err_ext / abs(res_ext) > errsum / abs(area):
                return compute_result(error_type)
        elif err_ext > errsum:
            return compute_result(error_type)
        elif area == 0.0:
            return _done(
                name, res_ext, err_ext, classify(error_type), workspace, integrand
            )

    # Test on divergence
    max_area = max(abs(res_ext), abs(area))

    if not positive_integrand and max_area < 0.01 * resabs0:
        return _done(name, res_ext, err_ext, classify(error_type), workspace, integrand)

    if area != 0.0:
        ratio = res_ext / area
        diverged = ratio < 0.01 or ratio > 100.0
    else:
        diverged = res_ext != 0.0

    if diverged or errsum > abs(area):
        error_type = 6

    return _done(name, res_ext, err_ext, classify(error_type), workspace, integrand)


def _qags(name, fn, integrand, a, b, epsabs, epsrel, limit, q, workspace):
    # Initial estimate and accuracy test for qags and its infinite range
    # variants. `fn` is what the kernel integrates over [a, b].

    workspace.initialise(a, b)

    # Perform the first integration
    result0, abserr0, resabs0, resasc0 = q(fn, a, b)

    workspace.set_initial_result(result0, abserr0)

    logger.debug("%s initial estimate %g +/- %g", name, result0, abserr0)

    # Test on accuracy
    tolerance = max(epsabs, epsrel * abs(result0))

    if abserr0 <= 100 * machine.eps * resabs0 and abserr0 > tolerance:
        return _done(name, result0, abserr0, Status.ROUNDOFF, workspace, integrand)
    elif (abserr0 <= tolerance and abserr0 != resasc0) or abserr0 == 0.0:
        return _done(name, result0, abserr0, Status.CONVERGED, workspace, integrand)
    elif limit == 1:
        return _done(
            name, result0, abserr0, Status.ITERATION_LIMIT, workspace, integrand
        )

    return _extrapolate(
        name,
        fn,
        integrand,
        q,
        workspace,
        epsabs,
        epsrel,
        limit,
        result0,
        resabs0,
        abserr0,
        iteration=1,
        seeded=False,
    )


def qags(
    f,
    a,
    b,
    epsabs=0.0,
    epsrel=1e-10,
    limit=1000,
    rule=2,
    workspace=None,
    args=(),
):
    """Integrate `f` over `[a, b]` with bisection and extrapolation.

    The sequence of partial sums is accelerated with the epsilon algorithm,
    which handles integrable endpoint and interior singularities far better
    than plain bisection.

    Parameters
    ----------
    f : function f(x, *args)
        The integrand.
    a, b : float
        Integration limits.
    epsabs, epsrel : float, optional
        Absolute and relative error tolerances.
    limit : int, optional
        Maximum number of subintervals.
    rule : int or callable, optional
        Local quadrature kernel. Defaults to the 21 point Gauss-Kronrod rule.
    workspace : Workspace, optional
        Workspace to reuse, with room for at least `limit` subintervals.
    args : tuple/list, optional
        Extra arguments passed to the integrand.

    Returns
    -------
    r : QuadResult
    """
    q = _get_kernel(rule)
    workspace = _check_workspace(workspace, limit)
    _check_tolerance(epsabs, epsrel)
    _check_finite(a, b)

    integrand = _Integrand(f, args)

    return _qags("qags", integrand, integrand, a, b, epsabs, epsrel, limit, q, workspace)


def qagp(
    f,
    points,
    epsabs=0.0,
    epsrel=1e-10,
    limit=1000,
    rule=2,
    workspace=None,
    args=(),
):
    """Integrate `f` with bisection and extrapolation, split at known points.

    Parameters
    ----------
    f : function f(x, *args)
        The integrand.
    points : array_like
        Ascending sequence ``[a, x_1, ..., x_n, b]`` of the integration
        limits and the locations of the singularities or discontinuities
        in between.
    epsabs, epsrel : float, optional
        Absolute and relative error tolerances.
    limit : int, optional
        Maximum number of subintervals. Must be at least ``len(points)``.
    rule : int or callable, optional
        Local quadrature kernel. Defaults to the 21 point Gauss-Kronrod rule.
    workspace : Workspace, optional
        Workspace to reuse, with room for at least `limit` subintervals.
    args : tuple/list, optional
        Extra arguments passed to the integrand.

    Returns
    -------
    r : QuadResult
    """
    q = _get_kernel(rule)

    pts = np.asarray(points, dtype=np.float64)

    if pts.ndim != 1 or len(pts) < 2:
        raise InvalidParameterError("Need at least two points to integrate between.")

    npts = len(pts)
    nint = npts - 1

    workspace = _check_workspace(workspace, limit)

    # `limit` is at most the workspace capacity
    if npts > limit:
        raise InvalidParameterError(
            f"Number of points ({npts}) exceeds the iteration limit ({limit})."
        )

    _check_tolerance(epsabs, epsrel)

    # The integration range and break points must be an ascending sequence
    if np.any(pts[1:] < pts[:-1]):
        raise InvalidParameterError("Points are not in an ascending sequence.")

    _check_finite(*pts)

    integrand = _Integrand(f, args)

    # Perform the first integration over each seed interval
    result0 = 0.0
    abserr0 = 0.0
    resabs0 = 0.0

    unreliable = np.zeros(nint, dtype=bool)

    workspace.initialise(pts[0], pts[-1])

    for i in range(nint):
        a1 = float(pts[i])
        b1 = float(pts[i + 1])

        area1, error1, resabs1, resasc1 = q(integrand, a1, b1)

        result0 = result0 + area1
        abserr0 = abserr0 + error1
        resabs0 = resabs0 + resabs1

        workspace.append_interval(a1, b1, area1, error1)

        # The kernel saw no structure to base its error estimate on
        unreliable[i] = error1 == resasc1 and error1 != 0.0

    # Compute the initial error estimate
    errsum = 0.0

    for i in range(nint):
        if unreliable[i]:
            workspace.set_error(i, abserr0)

        errsum = errsum + workspace.elist[i]

    errsum = float(errsum)

    # Sort results into order of decreasing error
    workspace.sort_results()

    logger.debug(
        "qagp initial estimate %g +/- %g over %i intervals", result0, abserr0, nint
    )

    # Test on accuracy
    tolerance = max(epsabs, epsrel * abs(result0))

    if abserr0 <= 100 * machine.eps * resabs0 and abserr0 > tolerance:
        return _done("qagp", result0, abserr0, Status.ROUNDOFF, workspace, integrand)
    elif abserr0 <= tolerance:
        return _done("qagp", result0, abserr0, Status.CONVERGED, workspace, integrand)
    elif limit == 1:
        return _done(
            "qagp", result0, abserr0, Status.ITERATION_LIMIT, workspace, integrand
        )

    return _extrapolate(
        "qagp",
        integrand,
        integrand,
        q,
        workspace,
        epsabs,
        epsrel,
        limit,
        result0,
        resabs0,
        errsum,
        iteration=nint - 1,
        seeded=True,
    )


def qagiu(
    f,
    a,
    epsabs=0.0,
    epsrel=1e-10,
    limit=1000,
    rule=1,
    workspace=None,
    args=(),
):
    """Integrate `f` over ``[a, +inf)``.

    The range is mapped onto ``(0, 1]`` with ``x = a + (1 - t) / t`` and
    integrated with :func:`qags`. Defaults to the 15 point rule, since the
    transformation usually introduces an integrable singularity at ``t = 0``.

    Parameters are as for :func:`qags`.

    Returns
    -------
    r : QuadResult
    """
    q = _get_kernel(rule)
    workspace = _check_workspace(workspace, limit)
    _check_tolerance(epsabs, epsrel)
    _check_finite(a)

    integrand = _Integrand(f, args)

    def transformed(t):
        x = a + (1 - t) / t
        y = integrand(x)
        return (y / t) / t

    return _qags("qagiu", transformed, integrand, 0.0, 1.0, epsabs, epsrel, limit, q, workspace)


def qagil(
    f,
    b,
    epsabs=0.0,
    epsrel=1e-10,
    limit=1000,
    rule=1,
    workspace=None,
    args=(),
):
    """Integrate `f` over ``(-inf, b]``.

    The range is mapped onto ``(0, 1]`` with ``x = b - (1 - t) / t``.
    Parameters are as for :func:`qags`.

    Returns
    -------
    r : QuadResult
    """
    q = _get_kernel(rule)
    workspace = _check_workspace(workspace, limit)
    _check_tolerance(epsabs, epsrel)
    _check_finite(b)

    integrand = _Integrand(f, args)

    def transformed(t):
        x = b - (1 - t) / t
        y = integrand(x)
        return (y / t) / t

    return _qags("qagil", transformed, integrand, 0.0, 1.0, epsabs, epsrel, limit, q, workspace)


def qagi(
    f,
    epsabs=0.0,
    epsrel=1e-10,
    limit=1000,
    rule=1,
    workspace=None,
    args=(),
):
    """Integrate `f` over the whole real line.

    Uses ``x = (1 - t) / t`` to fold ``(-inf, +inf)`` onto ``(0, 1]``.
    Parameters are as for :func:`qags`.

    Returns
    -------
    r : QuadResult
    """
    q = _get_kernel(rule)
    workspace = _check_workspace(workspace, limit)
    _check_tolerance(epsabs, epsrel)

    integrand = _Integrand(f, args)

    def transformed(t):
        x = (1 - t) / t
        y = integrand(x) + integrand(-x)
        return (y / t) / t

    return _qags("qagi", transformed, integrand, 0.0, 1.0, epsabs, epsrel, limit, q, workspace)
