# partial_schur/__init__.py

"""
partial_schur - a few eigenpairs of large real operators.

Computes partial Schur decompositions ``A Q = Q R`` of real, possibly
non-symmetric operators that are available only through a matrix-vector
product, using the implicitly restarted Arnoldi method with exact shifts,
real double shifts for complex conjugate pairs and locking of converged
Schur vectors.

Modules:
--------
- algebra   : Arnoldi factorization, dense Schur kernels, restart driver
- common    : Logging

Examples:
---------
>>> import numpy as np
>>> from partial_schur import partial_schur, partial_eigen
>>> A = np.random.default_rng(0).standard_normal((200, 200))
>>> res = partial_schur(A, nev=4, tol=1e-10)
>>> res.schur.eigenvalues
>>> vals, vecs = partial_eigen(res.schur)

Version : 0.1.0
Author  : Maksymilian Kliczkowski
License : MIT
"""

import importlib

# Package metadata
__version__         = "0.1.0"
__author__          = "Maksymilian Kliczkowski"
__email__           = "maksymilian.kliczkowski@pwr.edu.pl"
__license__         = "MIT"

MODULE_DESCRIPTION  = "Implicitly restarted Arnoldi method for partial Schur decompositions."

_SUBMODULES         = ["algebra", "common"]

# public names resolved from the eigen subpackage
_EIGEN_EXPORTS      = [
    "partial_schur",
    "partial_eigen",
    "IRAMParameters",
    "IRAMEigensolver",
    "PartialSchur",
    "PartialSchurResult",
    "Termination",
    "Target",
    "SchurVariant",
    "EigenResult",
    "EigenSolverError",
    "EigenSolverErrorMsg",
]

__all__             = _SUBMODULES + _EIGEN_EXPORTS

def get_module_description(module_name):
    """
    Get the description of a specific module in the partial_schur package.

    Parameters
    ----------
    module_name : str
        The name of the module.
    """
    descriptions = {
        "algebra"   : "Arnoldi factorization, dense real Schur kernels and the restart driver.",
        "common"    : "Logging utilities with console and file output.",
    }
    return descriptions.get(module_name, "Module not found.")

def list_available_modules():
    """
    List all available modules in the partial_schur package.
    """
    return list(_SUBMODULES)

# Lazy import subpackages on attribute access (PEP 562)
def __getattr__(name):
    if name in _SUBMODULES:
        return importlib.import_module(f".{name}", __name__)
    if name in _EIGEN_EXPORTS:
        return getattr(importlib.import_module(".algebra.eigen", __name__), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")

def __dir__():
    return sorted(list(globals().keys()) + __all__)

# ---------------------------------------------------------------------
#! EOF
# ---------------------------------------------------------------------
