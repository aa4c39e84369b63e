"""Machine constants and local quadrature kernels."""
