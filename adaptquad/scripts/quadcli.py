"""Command line script for running the adaptive integrators on test problems.
"""

import logging

import click

import numpy as np


def _step(x):
    return 1.0 if x >= 1.0 / 3.0 else 0.0


def _bessel(x):
    from scipy import special

    return special.j0(x)


#: Named test integrands, with a short description
INTEGRANDS = {
    "const": (lambda x: 1.0, "f(x) = 1"),
    "sqrt_sing": (lambda x: 1.0 / np.sqrt(x), "f(x) = 1 / sqrt(x), singular at 0"),
    "log_sing": (
        lambda x: np.log(x) / np.sqrt(x),
        "f(x) = log(x) / sqrt(x), singular at 0",
    ),
    "step": (_step, "unit step at x = 1/3"),
    "inv": (lambda x: 1.0 / x, "f(x) = 1 / x, not integrable at 0"),
    "gauss": (lambda x: np.exp(-x * x), "f(x) = exp(-x^2)"),
    "bessel": (_bessel, "f(x) = J_0(x)"),
    "osc": (lambda x: np.cos(100.0 * x), "f(x) = cos(100 x)"),
}


def tolerance_options(f):
    """The set of options controlling the accuracy of an integration."""
    options = [
        click.option(
            "--epsabs",
            type=float,
            default=0.0,
            help="Absolute error tolerance (default: 0).",
        ),
        click.option(
            "--epsrel",
            type=float,
            default=1e-10,
            help="Relative error tolerance (default: 1e-10).",
        ),
        click.option(
            "--limit",
            type=int,
            default=1000,
            metavar="N",
            help="Maximum number of subintervals (default: 1000).",
        ),
    ]

    handle = f

    for option in options:
        handle = option(handle)

    return handle


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log the progress of the integrators.")
def cli(verbose):
    """Integrate test functions with adaptive Gauss-Kronrod quadrature."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command("list")
def list_():
    """List the available test integrands."""
    for name, (_, description) in INTEGRANDS.items():
        click.echo(f"{name:<10s} {description}")


@cli.command(context_settings={"ignore_unknown_options": True})
@click.argument("name", type=click.Choice(list(INTEGRANDS)))
@click.argument("a", type=float)
@click.argument("b", type=float)
@tolerance_options
@click.option(
    "--method",
    type=click.Choice(["auto", "qag", "qags", "qagp"]),
    default="auto",
    help=(
        'Integration driver. "auto" (default) picks qagp when break points are '
        "given, an infinite range driver when a bound is infinite, and qags "
        "otherwise."
    ),
)
@click.option(
    "--points",
    type=float,
    multiple=True,
    metavar="X",
    help="A break point inside the range. May be given several times.",
)
@click.option(
    "--rule",
    type=click.Choice(["15", "21"]),
    default=None,
    help="Number of points of the Gauss-Kronrod rule (default: driver's choice).",
)
def integrate(name, a, b, epsabs, epsrel, limit, method, points, rule):
    """Integrate test function NAME from A to B.

    Bounds may be given as inf or -inf. The exit code is the numeric
    termination status, zero on convergence.
    """
    from adaptquad.core import adaptive
    from adaptquad.core.status import InvalidParameterError
    from adaptquad.integrate import Integrator

    f = INTEGRANDS[name][0]

    kwargs = dict(epsabs=epsabs, epsrel=epsrel, limit=limit)

    if rule is not None:
        kwargs["rule"] = int(rule)

    try:
        if method == "auto":
            r = Integrator(**kwargs).integrate(f, a, b, points=list(points))
        elif method == "qagp":
            r = adaptive.qagp(f, [a, *sorted(points), b], **kwargs)
        else:
            r = getattr(adaptive, method)(f, a, b, **kwargs)
    except InvalidParameterError as e:
        raise click.UsageError(str(e))

    click.echo(f"result     = {r.result:.16e}")
    click.echo(f"abserr     = {r.abserr:.6e}")
    click.echo(f"status     = {r.status.name} ({r.status.message})")
    click.echo(f"intervals  = {r.iterations}")
    click.echo(f"evaluations= {r.neval}")

    click.get_current_context().exit(int(r.status))
