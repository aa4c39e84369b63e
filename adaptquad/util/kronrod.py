"""Embedded Gauss-Kronrod rules used as local quadrature kernels.

A kernel is any callable ``rule(f, a, b)`` returning the tuple
``(result, abserr, resabs, resasc)``:

result
    The Kronrod estimate of the integral of `f` over `[a, b]`.
abserr
    The estimated absolute error of `result`.
resabs
    An estimate of the integral of ``|f|``.
resasc
    An estimate of the integral of ``|f - mean(f)|``, which measures how
    much structure the rule actually resolved.

The tables hold the non-negative Kronrod abscissae in decreasing order. The
Gauss abscissae are the odd entries of the Kronrod table, plus the centre
point when the Gauss rule has an odd number of points.
"""

import numpy as np

from adaptquad.util import machine

# 7 point Gauss, 15 point Kronrod
_XGK15 = np.array(
    [
        0.991455371120812639206854697526329,
        0.949107912342758524526189684047851,
        0.864864423359769072789712788640926,
        0.741531185599394439863864773280788,
        0.586087235467691130294144838258730,
        0.405845151377397166906606412076961,
        0.207784955007898467600689403773245,
        0.000000000000000000000000000000000,
    ]
)

_WG15 = np.array(
    [
        0.129484966168869693270611432679082,
        0.279705391489276667901467771423780,
        0.381830050505118944950369775488975,
        0.417959183673469387755102040816327,
    ]
)

_WGK15 = np.array(
    [
        0.022935322010529224963732008058970,
        0.063092092629978553290700663189204,
        0.104790010322250183839876322541518,
        0.140653259715525918745189590510238,
        0.169004726639267902826583426598550,
        0.190350578064785409913256402421014,
        0.204432940075298892414161999234649,
        0.209482141084727828012999174891714,
    ]
)

# 10 point Gauss, 21 point Kronrod
_XGK21 = np.array(
    [
        0.995657163025808080735527280689003,
        0.973906528517171720077964012084452,
        0.930157491355708226001207180059508,
        0.865063366688984510732096688423493,
        0.780817726586416897063717578345042,
        0.679409568299024406234327365114874,
        0.562757134668604683339000099272694,
        0.433395394129247190799265943165784,
        0.294392862701460198131126603103866,
        0.148874338981631210884826001129720,
        0.000000000000000000000000000000000,
    ]
)

_WG21 = np.array(
    [
        0.066671344308688137593568809893332,
        0.149451349150580593145776339657697,
        0.219086362515982043995534934228163,
        0.269266719309996355091226921569469,
        0.295524224714752870173892994651338,
    ]
)

_WGK21 = np.array(
    [
        0.011694638867371874278064396062192,
        0.032558162307964727478818972459390,
        0.054755896574351996031381300244580,
        0.075039674810919952767043140916190,
        0.093125454583697605535065465083366,
        0.109387158802297641899210590325805,
        0.123491976262065851077958109831074,
        0.134709217311473325928054001771707,
        0.142775938577060080797094273138717,
        0.147739104901338491374841515972068,
        0.149445554002916905664936468389821,
    ]
)


def rescale_error(err, result_abs, result_asc):
    """Turn the raw Gauss/Kronrod difference into a realistic error estimate.

    Parameters
    ----------
    err : float
        Difference between the Kronrod and Gauss estimates.
    result_abs, result_asc : float
        The `resabs` and `resasc` magnitudes of the same rule.

    Returns
    -------
    err : float
        The rescaled absolute error, never below the roundoff level of
        `result_abs`.
    """
    err = abs(err)

    if result_asc != 0 and err != 0:
        scale = (200 * err / result_asc) ** 1.5

        if scale < 1:
            err = result_asc * scale
        else:
            err = result_asc

    if result_abs > machine.tiny / (50 * machine.eps):
        min_err = 50 * machine.eps * result_abs

        if min_err > err:
            err = min_err

    return err


def _qk(xgk, wg, wgk, f, a, b):
    # Evaluate an embedded Gauss-Kronrod pair on [a, b].
    n = len(xgk)

    fv1 = [0.0] * n
    fv2 = [0.0] * n

    center = 0.5 * (a + b)
    half_length = 0.5 * (b - a)
    abs_half_length = abs(half_length)
    f_center = f(center)

    result_gauss = 0.0
    result_kronrod = f_center * wgk[n - 1]

    result_abs = abs(result_kronrod)

    if n % 2 == 0:
        result_gauss = f_center * wg[n // 2 - 1]

    # Abscissae shared with the Gauss rule
    for j in range((n - 1) // 2):
        jtw = 2 * j + 1
        abscissa = half_length * xgk[jtw]
        fval1 = f(center - abscissa)
        fval2 = f(center + abscissa)
        fsum = fval1 + fval2
        fv1[jtw] = fval1
        fv2[jtw] = fval2
        result_gauss += wg[j] * fsum
        result_kronrod += wgk[jtw] * fsum
        result_abs += wgk[jtw] * (abs(fval1) + abs(fval2))

    # Kronrod-only abscissae
    for j in range(n // 2):
        jtwm1 = 2 * j
        abscissa = half_length * xgk[jtwm1]
        fval1 = f(center - abscissa)
        fval2 = f(center + abscissa)
        fv1[jtwm1] = fval1
        fv2[jtwm1] = fval2
        result_kronrod += wgk[jtwm1] * (fval1 + fval2)
        result_abs += wgk[jtwm1] * (abs(fval1) + abs(fval2))

    mean = result_kronrod * 0.5

    result_asc = wgk[n - 1] * abs(f_center - mean)

    for j in range(n - 1):
        result_asc += wgk[j] * (abs(fv1[j] - mean) + abs(fv2[j] - mean))

    err = (result_kronrod - result_gauss) * half_length

    result_kronrod *= half_length
    result_abs *= abs_half_length
    result_asc *= abs_half_length

    abserr = rescale_error(err, result_abs, result_asc)

    return (
        float(result_kronrod),
        float(abserr),
        float(result_abs),
        float(result_asc),
    )


def qk15(f, a, b):
    """Integrate `f` over `[a, b]` with the 15 point Gauss-Kronrod rule.

    Returns
    -------
    result, abserr, resabs, resasc : float
        See the module documentation.
    """
    return _qk(_XGK15, _WG15, _WGK15, f, a, b)


def qk21(f, a, b):
    """Integrate `f` over `[a, b]` with the 21 point Gauss-Kronrod rule.

    Returns
    -------
    result, abserr, resabs, resasc : float
        See the module documentation.
    """
    return _qk(_XGK21, _WG21, _WGK21, f, a, b)


#: Built-in rules by key, and by number of points
RULES = {1: qk15, 2: qk21, 15: qk15, 21: qk21}


def get_rule(rule):
    """Resolve a rule key or callable into a kernel.

    Parameters
    ----------
    rule : int or callable
        Either a key into `RULES` or a kernel with the signature
        ``rule(f, a, b) -> (result, abserr, resabs, resasc)``.

    Returns
    -------
    kernel : callable
    """
    if callable(rule):
        return rule

    try:
        return RULES[rule]
    except (KeyError, TypeError):
        raise ValueError(f"Unknown integration rule {rule!r}.") from None
