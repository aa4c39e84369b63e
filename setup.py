"""Build and install adaptquad.

There are no compiled extensions, all of the package is pure Python on top
of numpy.
"""

from setuptools import find_packages, setup

setup(
    name="adaptquad",  # required
    version="0.1.0",
    description="Globally adaptive quadrature with epsilon-algorithm extrapolation",
    packages=find_packages(include=["adaptquad", "adaptquad.*"]),
    python_requires=">=3.8",
    install_requires=["numpy", "scipy", "click"],
    extras_require={"test": ["pytest"]},
    entry_points={
        "console_scripts": ["adaptquad = adaptquad.scripts.quadcli:cli"],
    },
)
