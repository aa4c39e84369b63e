"""Constants describing IEEE double precision arithmetic."""

import numpy as np

_finfo = np.finfo(np.float64)

#: Machine epsilon, the spacing between 1.0 and the next double
eps = float(_finfo.eps)

#: Smallest positive normalised double
tiny = float(_finfo.tiny)

#: Largest finite double
huge = float(_finfo.max)

del _finfo


def tolerance_floor():
    """The smallest relative tolerance that can be requested without `epsabs`."""
    return max(50.0 * eps, 0.5e-28)


def subinterval_too_small(a1, a2, b2):
    """Test whether the bisection of `[a1, b2]` at `a2` has lost resolution.

    Parameters
    ----------
    a1, a2, b2 : float
        Left end, midpoint and right end of the bisected interval.

    Returns
    -------
    too_small : bool
        True when both ends coincide with the midpoint to within a few
        units of roundoff, so further bisection cannot make progress.
    """
    tmp = (1 + 100 * eps) * (abs(a2) + 1000 * tiny)

    return abs(a1) <= tmp and abs(b2) <= tmp
