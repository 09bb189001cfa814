# file        :   partial_schur/algebra/utils.py
# author      :   Maksymilian Kliczkowski
# copyright   :   (c) 2025, Maksymilian Kliczkowski

'''
Environment driven defaults of the linear algebra layer.

Provides:
- PY_GLOBAL_SEED    : default seed of the start vector generator (env PY_GLOBAL_SEED).
- PY_FLOATING_POINT : default real working type, 'float64' or 'float32' (env PY_FLOATING_POINT).
- PY_INFO_VERBOSE   : banner switch (env PY_BACKEND_INFO).
- get_rng           : numpy Generator for a seed (or the global default).
- resolve_dtype     : working dtype of a run from an explicit request and the operator.
- machine_eps       : unit roundoff of a real dtype.
'''

import os
from typing import Optional, Type, Union

import numpy as np
from numpy.typing import DTypeLike

from ..common.flog import get_global_logger

# ---------------------------------------------------------------------
#! os environment variables
# ---------------------------------------------------------------------

PY_FLOATING_POINT_STR   : str               = "PY_FLOATING_POINT"
PY_GLOBAL_SEED_STR      : str               = "PY_GLOBAL_SEED"
PY_INFO_VERBOSE_STR     : str               = "PY_BACKEND_INFO"

DEFAULT_SEED            : int               = 42
DEFAULT_NP_FLOAT_TYPE   : Type              = np.float64
DEFAULT_NP_CPX_TYPE     : Type              = np.complex128

# ---------------------------------------------------------------------
#! SET VARIABLES
# ---------------------------------------------------------------------

PY_GLOBAL_SEED          : int               = int(os.environ.get(PY_GLOBAL_SEED_STR, DEFAULT_SEED))
os.environ[PY_GLOBAL_SEED_STR]              = str(PY_GLOBAL_SEED)

PREFER_32BIT            : bool              = os.environ.get(PY_FLOATING_POINT_STR, "64bit").lower() in ["32bit", "32", "float32", "float"]
PY_FLOATING_POINT       : str               = "float32" if PREFER_32BIT else "float64"
os.environ[PY_FLOATING_POINT_STR]           = PY_FLOATING_POINT

PY_NP_FLOAT_TYPE        : Type              = np.float32 if PREFER_32BIT else np.float64
PY_NP_CPX_TYPE          : Type              = np.complex64 if PREFER_32BIT else np.complex128
PY_INFO_VERBOSE         : bool              = os.environ.get(PY_INFO_VERBOSE_STR, "0") != "0"

# ---------------------------------------------------------------------
#! Functions
# ---------------------------------------------------------------------

def get_rng(seed: Optional[Union[int, np.random.Generator]] = None) -> np.random.Generator:
    """
    Return the random generator used for start vectors and breakdown
    regeneration.

    Parameters
    ----------
    seed
        ``None`` uses ``PY_GLOBAL_SEED``; an existing ``Generator`` is returned as is.
    """
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(PY_GLOBAL_SEED if seed is None else seed)

def resolve_dtype(dtype: Optional[DTypeLike] = None, operator_dtype: Optional[DTypeLike] = None) -> np.dtype:
    """
    Working dtype of a run.

    An explicit ``dtype`` wins. Otherwise a floating operator keeps its own
    precision, while integer or unknown operators fall back to
    ``PY_NP_FLOAT_TYPE``. Complex types are passed through unchanged, the
    caller decides whether it supports them.
    """
    if dtype is not None:
        return np.dtype(dtype)
    if operator_dtype is not None:
        op_dtype = np.dtype(operator_dtype)
        if np.issubdtype(op_dtype, np.complexfloating):
            return op_dtype
        if op_dtype in (np.dtype(np.float32), np.dtype(np.float64)):
            return op_dtype
    return np.dtype(PY_NP_FLOAT_TYPE)

def complex_dtype(dtype: DTypeLike) -> np.dtype:
    ''' Complex counterpart of a real dtype (float32 -> complex64). '''
    return np.result_type(np.dtype(dtype), np.complex64)

def machine_eps(dtype: DTypeLike = DEFAULT_NP_FLOAT_TYPE) -> float:
    ''' Unit roundoff of ``dtype`` as a python float. '''
    return float(np.finfo(np.dtype(dtype)).eps)

# ---------------------------------------------------------------------

if PY_INFO_VERBOSE:
    get_global_logger().info(f"partial_schur: numpy {np.__version__}, default float {PY_FLOATING_POINT}, seed {PY_GLOBAL_SEED}", lvl=0)

# ---------------------------------------------------------------------
#! EOF
# ---------------------------------------------------------------------
