"""Convergence acceleration with Wynn's epsilon algorithm.

The extrapolated drivers feed the sequence of partial sums of their
integral estimates into an :class:`ExtrapolationTable`. Each call to
:meth:`ExtrapolationTable.transform` extends the epsilon table by a new
lower diagonal and returns the best limit estimate it finds, together with
an error estimate.

The arithmetic is written in the same order as the classic implementation
so that results agree to the last bit.
"""

import numpy as np

from adaptquad.util import machine

#: Maximum number of elements kept in the table
LIMEXP = 49

# The transform uses two cells beyond the last live element
_TABLE_SIZE = LIMEXP + 3


class ExtrapolationTable(object):
    """The epsilon table and the last three extrapolated results.

    Attributes
    ----------
    n : int
        Number of elements in the table.
    rlist2 : np.ndarray
        The table itself. Only the first `n` entries are meaningful.
    nres : int
        Number of completed transforms.
    res3la : np.ndarray[3]
        The last three extrapolated results.
    """

    def __init__(self):
        self.rlist2 = np.zeros(_TABLE_SIZE, dtype=np.float64)
        self.res3la = np.zeros(3, dtype=np.float64)
        self.n = 0
        self.nres = 0

    def initialise(self):
        """Empty the table."""
        self.n = 0
        self.nres = 0

    def append(self, y):
        """Add the next element of the sequence to accelerate.

        A transform normally keeps the table within `LIMEXP` elements. If
        it is full anyway (after a transform that stopped early on
        convergence) the two oldest elements are discarded.
        """
        if self.n > LIMEXP:
            self.rlist2[: self.n - 2] = self.rlist2[2 : self.n]
            self.n -= 2

        self.rlist2[self.n] = y
        self.n += 1

    def transform(self):
        """Apply the epsilon algorithm to the table.

        Returns
        -------
        result : float
            The extrapolated limit of the sequence.
        abserr : float
            Estimate of the absolute error of `result`. Before three
            transforms have completed this is the largest double, since no
            meaningful estimate can be made.
        """
        epstab = self.rlist2
        res3la = self.res3la
        n = self.n - 1

        current = float(epstab[n])

        absolute = machine.huge
        relative = 5 * machine.eps * abs(current)

        newelm = n // 2
        n_orig = n
        n_final = n

        nres_orig = self.nres

        result = current
        abserr = machine.huge

        if n < 2:
            return result, max(absolute, relative)

        epstab[n + 2] = epstab[n]
        epstab[n] = machine.huge

        for i in range(newelm):
            res = float(epstab[n - 2 * i + 2])
            e0 = float(epstab[n - 2 * i - 2])
            e1 = float(epstab[n - 2 * i - 1])
            e2 = res

            e1abs = abs(e1)
            delta2 = e2 - e1
            err2 = abs(delta2)
            tol2 = max(abs(e2), e1abs) * machine.eps
            delta3 = e1 - e0
            err3 = abs(delta3)
            tol3 = max(e1abs, abs(e0)) * machine.eps

            if err2 <= tol2 and err3 <= tol3:
                # e0, e1 and e2 are equal to within machine accuracy,
                # convergence is assumed.
                result = res
                absolute = err2 + err3
                relative = 5 * machine.eps * abs(res)
                return result, max(absolute, relative)

            e3 = float(epstab[n - 2 * i])
            epstab[n - 2 * i] = e1
            delta1 = e1 - e3
            err1 = abs(delta1)
            tol1 = max(e1abs, abs(e3)) * machine.eps

            # Two elements are very close to each other, omit a part of the
            # table by adjusting the value of n
            if err1 <= tol1 or err2 <= tol2 or err3 <= tol3:
                n_final = 2 * i
                break

            ss = (1 / delta1 + 1 / delta2) - 1 / delta3

            # Irregular behaviour in the table, omit a part of it
            if abs(ss * e1) <= 0.0001:
                n_final = 2 * i
                break

            # Compute a new element and eventually adjust the result
            res = e1 + 1 / ss
            epstab[n - 2 * i] = res

            error = err2 + abs(res - e2) + err3

            if error <= abserr:
                abserr = error
                result = res

        # Shift the table
        if n_final == LIMEXP:
            n_final = 2 * (LIMEXP // 2)

        if n_orig % 2 == 1:
            for i in range(newelm + 1):
                epstab[1 + i * 2] = epstab[i * 2 + 3]
        else:
            for i in range(newelm + 1):
                epstab[i * 2] = epstab[i * 2 + 2]

        if n_orig != n_final:
            for i in range(n_final + 1):
                epstab[i] = epstab[n_orig - n_final + i]

        self.n = n_final + 1

        if nres_orig < 3:
            res3la[nres_orig] = result
            abserr = machine.huge
        else:
            abserr = (
                abs(result - res3la[2])
                + abs(result - res3la[1])
                + abs(result - res3la[0])
            )

            res3la[0] = res3la[1]
            res3la[1] = res3la[2]
            res3la[2] = result

        self.nres = nres_orig + 1

        abserr = max(float(abserr), 5 * machine.eps * abs(result))

        return result, abserr
