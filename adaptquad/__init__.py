"""Adaptive quadrature with convergence acceleration

Submodules
==========

.. autosummary::
    :toctree: _autosummary

    core
    integrate
    scripts
    util
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("adaptquad")
except PackageNotFoundError:
    # package is not installed
    pass

del version, PackageNotFoundError
