"""Performance benchmarks for itermin.

This package contains microbenchmarks for the hot paths of the library:
the Krylov iterations of the linear solvers and the minimizer main loops.
"""
