"""Bookkeeping for the subintervals of an adaptive integration.

The :class:`Workspace` is a fixed capacity arena of subintervals stored as
parallel arrays, together with an ordering ``order`` over their indices that
keeps the subinterval with the largest error estimate at hand. A subinterval
is never freed individually: bisection overwrites the parent's slot with one
child and appends the other, and the whole arena is reset by
:meth:`Workspace.initialise`.

Only a prefix of ``order`` is kept exactly sorted by decreasing error. Its
length shrinks as the remaining subdivision budget shrinks, since an
interval that cannot be reached before the budget runs out never needs to
be found.
"""

import numpy as np

from adaptquad.core.status import InvalidParameterError


class Workspace(object):
    """An arena holding up to `limit` subintervals.

    Parameters
    ----------
    limit : int
        Capacity, the maximum number of subintervals.

    Attributes
    ----------
    alist, blist : np.ndarray[limit]
        Left and right ends of each subinterval.
    rlist, elist : np.ndarray[limit]
        Integral and absolute error estimates on each subinterval.
    level : np.ndarray[limit]
        Bisection depth of each subinterval.
    order : np.ndarray[limit]
        Permutation of the active indices, by decreasing error at the front.
    size : int
        Number of active subintervals.
    nrmax : int
        Position in `order` of the subinterval to bisect next.
    i : int
        Index of the subinterval to bisect next.
    maximum_level : int
        Deepest bisection level reached.
    """

    def __init__(self, limit):
        if limit < 1:
            raise InvalidParameterError(
                f"Workspace needs room for at least one subinterval (got {limit})."
            )

        self.limit = int(limit)

        self.alist = np.zeros(self.limit, dtype=np.float64)
        self.blist = np.zeros(self.limit, dtype=np.float64)
        self.rlist = np.zeros(self.limit, dtype=np.float64)
        self.elist = np.zeros(self.limit, dtype=np.float64)
        self.order = np.zeros(self.limit, dtype=np.intp)
        self.level = np.zeros(self.limit, dtype=np.intp)

        self.size = 0
        self.nrmax = 0
        self.i = 0
        self.maximum_level = 0

    def initialise(self, a, b):
        """Reset to a single, not yet evaluated, subinterval `[a, b]`."""
        self.size = 0
        self.nrmax = 0
        self.i = 0

        self.alist[0] = a
        self.blist[0] = b
        self.rlist[0] = 0.0
        self.elist[0] = 0.0
        self.order[0] = 0
        self.level[0] = 0

        self.maximum_level = 0

    def set_initial_result(self, result, error):
        """Record the first estimate over the whole interval."""
        self.size = 1
        self.rlist[0] = result
        self.elist[0] = error

    def append_interval(self, a, b, area, error):
        """Add an evaluated level zero subinterval at the end of the arena.

        Used to seed the workspace with several subintervals before any
        bisection. Call :meth:`sort_results` once all are added.
        """
        i_new = self.size

        if i_new >= self.limit:
            raise RuntimeError("Workspace is full, cannot append subinterval.")

        self.alist[i_new] = a
        self.blist[i_new] = b
        self.rlist[i_new] = area
        self.elist[i_new] = error
        self.order[i_new] = i_new
        self.level[i_new] = 0

        self.size += 1

    def set_error(self, i, error):
        """Overwrite the error estimate of subinterval `i`."""
        if not 0 <= i < self.size:
            raise IndexError(f"No active subinterval {i}.")

        self.elist[i] = error

    def retrieve(self):
        """The subinterval with the largest error.

        Returns
        -------
        a, b, r, e : float
            Bounds, integral and error estimate.
        """
        i = self.i

        return (
            float(self.alist[i]),
            float(self.blist[i]),
            float(self.rlist[i]),
            float(self.elist[i]),
        )

    def update(self, a1, b1, area1, error1, a2, b2, area2, error2):
        """Replace the current largest error subinterval by its two halves.

        The half with the larger error takes over the parent's slot, the
        other is appended. The ordering is then restored with :meth:`qpsrt`.
        """
        if self.size >= self.limit:
            raise RuntimeError("Workspace is full, cannot bisect further.")

        i_max = self.i
        i_new = self.size

        new_level = int(self.level[i_max]) + 1

        if error2 > error1:
            # blist[i_max] is already b2
            self.alist[i_max] = a2
            self.rlist[i_max] = area2
            self.elist[i_max] = error2
            self.level[i_max] = new_level

            self.alist[i_new] = a1
            self.blist[i_new] = b1
            self.rlist[i_new] = area1
            self.elist[i_new] = error1
            self.level[i_new] = new_level
        else:
            # alist[i_max] is already a1
            self.blist[i_max] = b1
            self.rlist[i_max] = area1
            self.elist[i_max] = error1
            self.level[i_max] = new_level

            self.alist[i_new] = a2
            self.blist[i_new] = b2
            self.rlist[i_new] = area2
            self.elist[i_new] = error2
            self.level[i_new] = new_level

        self.size += 1

        if new_level > self.maximum_level:
            self.maximum_level = new_level

        self.qpsrt()

    def qpsrt(self):
        """Restore the descending error ordering after a bisection.

        The parent's slot (now holding the larger child) is moved to its
        place in the sorted prefix of `order` by a top-down scan, and the
        newly appended child by a bottom-up scan. When subdivision has made
        an error estimate grow, positions deferred by :meth:`increase_nrmax`
        are revisited first.
        """
        last = self.size - 1
        limit = self.limit
        elist = self.elist
        order = self.order

        i_nrmax = self.nrmax
        i_maxerr = int(order[i_nrmax])

        # Fewer than three intervals, the larger child is in slot 0
        if last < 2:
            order[0] = 0
            order[1] = 1
            self.i = i_maxerr
            return

        errmax = elist[i_maxerr]

        # Only needed when a difficult integrand made subdivision increase
        # the error estimate. Normally insertion starts after position nrmax.
        while i_nrmax > 0 and errmax > elist[order[i_nrmax - 1]]:
            order[i_nrmax] = order[i_nrmax - 1]
            i_nrmax -= 1

        # Number of positions to keep in descending order. This depends on
        # the number of subdivisions still allowed.
        if last < (limit // 2 + 2):
            top = last
        else:
            top = limit - last + 1

        # Insert errmax by traversing the list top-down
        i = i_nrmax + 1

        while i < top and errmax < elist[order[i]]:
            order[i - 1] = order[i]
            i += 1

        order[i - 1] = i_maxerr

        # The unsorted tail keeps whatever is pushed out of the sorted prefix
        if top < last:
            order[last] = order[top]

        # Insert errmin by traversing the list bottom-up
        errmin = elist[last]

        k = top - 1

        while k > i - 2 and errmin >= elist[order[k]]:
            order[k + 1] = order[k]
            k -= 1

        order[k + 1] = last

        self.i = int(order[i_nrmax])
        self.nrmax = i_nrmax

    def sort_results(self):
        """Sort the whole of `order` by decreasing error.

        A selection sort, used once after seeding several subintervals with
        :meth:`append_interval`. Among equal errors the later one wins.
        """
        nint = self.size
        elist = self.elist
        order = self.order

        for i in range(nint):
            e1 = elist[order[i]]
            j_max = i

            for j in range(i + 1, nint):
                e2 = elist[order[j]]

                if e2 >= e1:
                    j_max = j
                    e1 = e2

            if j_max != i:
                order[i], order[j_max] = order[j_max], order[i]

        self.i = int(order[0])

    def sum_results(self):
        """Total of the integral estimates over all active subintervals."""
        result_sum = 0.0

        for k in range(self.size):
            result_sum += self.rlist[k]

        return float(result_sum)

    def large_interval(self, i=None):
        """Whether subinterval `i` (default: the next to bisect) can still be refined.

        An interval is large if it sits above the deepest bisection level
        reached so far.
        """
        if i is None:
            i = self.i

        return self.level[i] < self.maximum_level

    def increase_nrmax(self):
        """Advance `nrmax` to the largest error subinterval that is still large.

        Only the positions that can still be reached with the remaining
        budget are scanned.

        Returns
        -------
        found : bool
            True if such a subinterval was found. It is then the next one
            to be bisected.
        """
        last = self.size - 1

        if last > (1 + self.limit // 2):
            jupbnd = self.limit + 1 - last
        else:
            jupbnd = last

        for _ in range(self.nrmax, jupbnd + 1):
            i_max = int(self.order[self.nrmax])

            self.i = i_max

            if self.level[i_max] < self.maximum_level:
                return True

            self.nrmax += 1

        return False

    def reset_nrmax(self):
        """Point back at the subinterval with the globally largest error."""
        self.nrmax = 0
        self.i = int(self.order[0])

    def intervals(self):
        """Copies of the active subintervals, in arena order.

        Returns
        -------
        a, b, r, e : np.ndarray[size]
            Bounds, integrals and errors.
        level : np.ndarray[size]
            Bisection depths.
        """
        n = self.size

        return (
            self.alist[:n].copy(),
            self.blist[:n].copy(),
            self.rlist[:n].copy(),
            self.elist[:n].copy(),
            self.level[:n].copy(),
        )
