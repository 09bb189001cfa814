"""
Linear algebra layer of partial_schur.

Subpackages:
    - eigen : implicitly restarted Arnoldi solver and its dense kernels
    - utils : environment driven defaults (seed, floating point type)

-----------------------------------------------------------
Author          : Maksymilian Kliczkowski
Version         : 1.0
-----------------------------------------------------------
"""

import importlib
from typing import TYPE_CHECKING

# -----------------------------------------------------------------------------------------------
# Lazy Import Configuration
# -----------------------------------------------------------------------------------------------

_LAZY_IMPORTS = {
    # Configuration
    'PY_GLOBAL_SEED'        : ('.utils', 'PY_GLOBAL_SEED'),
    'PY_FLOATING_POINT'     : ('.utils', 'PY_FLOATING_POINT'),
    'get_rng'               : ('.utils', 'get_rng'),
    'machine_eps'           : ('.utils', 'machine_eps'),
    # Submodules (lazy)
    'eigen'                 : ('.eigen', None),
    'utils'                 : ('.utils', None),
    # Shortcuts
    'partial_schur'         : ('.eigen.iram', 'partial_schur'),
    'partial_eigen'         : ('.eigen.iram', 'partial_eigen'),
}

_LAZY_CACHE = {}

if TYPE_CHECKING:
    from .utils import PY_GLOBAL_SEED, PY_FLOATING_POINT, get_rng, machine_eps
    from .eigen.iram import partial_schur, partial_eigen

# -----------------------------------------------------------------------------------------------

def _lazy_import(name: str):
    """
    Lazily import a module or attribute based on _LAZY_IMPORTS configuration.
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

def __getattr__(name: str):
    return _lazy_import(name)

def __dir__():
    return sorted(list(globals().keys()) + list(_LAZY_IMPORTS.keys()))

__all__ = list(_LAZY_IMPORTS.keys())

# -----------------------------------------------------------------------------------------------
#! EOF
# -----------------------------------------------------------------------------------------------
