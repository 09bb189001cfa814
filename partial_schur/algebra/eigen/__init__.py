"""
Partial Schur Eigenvalue Module

Implicitly restarted Arnoldi method for a few eigenpairs of large real,
possibly non-symmetric operators available only through matrix-vector
products.

Entry points:
    - partial_schur: partial Schur decomposition A Q = Q R
    - partial_eigen: eigenpairs from a partial Schur decomposition
    - IRAMEigensolver: solver class returning the standard EigenResult

Building blocks:
    - local_schurfact / reorder_schur: dense real Schur form of Hessenberg matrices
    - Arnoldi / extend / implicit_restart / lock_block: Krylov factorization
    - RitzValues / IsConverged: Ritz bookkeeping
    - Target / SchurVariant: ordering policy and shift strategy

This module uses lazy imports to minimize startup overhead.

-----------------------------------------------------------
Author          : Maksymilian Kliczkowski
Date            : 2025-12-01
Version         : 1.0
-----------------------------------------------------------
"""

from typing import TYPE_CHECKING
import importlib

# -----------------------------------------------------------------------------------------------
# Lazy Import Configuration
# -----------------------------------------------------------------------------------------------

_LAZY_IMPORTS = {
    # Driver
    'partial_schur'             : ('.iram', 'partial_schur'),
    'partial_eigen'             : ('.iram', 'partial_eigen'),
    'IRAMParameters'            : ('.iram', 'IRAMParameters'),
    'IRAMEigensolver'           : ('.iram', 'IRAMEigensolver'),
    # Dense Schur
    'SchurVariant'              : ('.schur', 'SchurVariant'),
    'local_schurfact'           : ('.schur', 'local_schurfact'),
    'reorder_schur'             : ('.schur', 'reorder_schur'),
    # Krylov factorization
    'Arnoldi'                   : ('.arnoldi', 'Arnoldi'),
    'ArnoldiWorkspace'          : ('.arnoldi', 'ArnoldiWorkspace'),
    # Ritz bookkeeping
    'RitzValues'                : ('.ritz', 'RitzValues'),
    'IsConverged'               : ('.ritz', 'IsConverged'),
    'eigvalues'                 : ('.ritz', 'eigvalues'),
    # Policies and operators
    'Target'                    : ('.targets', 'Target'),
    'Operator'                  : ('.operators', 'Operator'),
    'as_operator'               : ('.operators', 'as_operator'),
    # Result types
    'EigenResult'               : ('.result', 'EigenResult'),
    'EigenSolver'               : ('.result', 'EigenSolver'),
    'EigenSolverError'          : ('.result', 'EigenSolverError'),
    'EigenSolverErrorMsg'       : ('.result', 'EigenSolverErrorMsg'),
    'PartialSchur'              : ('.result', 'PartialSchur'),
    'PartialSchurResult'        : ('.result', 'PartialSchurResult'),
    'Termination'               : ('.result', 'Termination'),
}

_LAZY_CACHE = {}

# For type checking only
if TYPE_CHECKING:
    from .iram      import partial_schur, partial_eigen, IRAMParameters, IRAMEigensolver
    from .schur     import SchurVariant, local_schurfact, reorder_schur
    from .arnoldi   import Arnoldi, ArnoldiWorkspace
    from .ritz      import RitzValues, IsConverged, eigvalues
    from .targets   import Target
    from .operators import Operator, as_operator
    from .result    import (EigenResult, EigenSolver, EigenSolverError, EigenSolverErrorMsg,
                            PartialSchur, PartialSchurResult, Termination)

# -----------------------------------------------------------------------------------------------

def __getattr__(name: str):
    """
    Module-level __getattr__ for lazy imports.
    """
    if name in _LAZY_CACHE:
        return _LAZY_CACHE[name]

    if name not in _LAZY_IMPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module_path, attr_name  = _LAZY_IMPORTS[name]
    module                  = importlib.import_module(module_path, package=__name__)
    result                  = module if attr_name is None else getattr(module, attr_name)
    _LAZY_CACHE[name]       = result
    return result

def __dir__():
    return sorted(list(globals().keys()) + list(_LAZY_IMPORTS.keys()))

__all__ = list(_LAZY_IMPORTS.keys())

# ------------------------------------------------------------------------------------------------
#! EOF
# ------------------------------------------------------------------------------------------------
