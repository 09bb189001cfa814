'''
Ordering policies for Ritz values.

A ``Target`` decides which part of the spectrum a restart keeps. Each policy
maps eigenvalues to a real key where a larger key means "more wanted"; the
imaginary policies use ``|imag|`` so that the two members of a complex
conjugate pair of a real operator always share their key.

-------------------------------------------------------
file        :   partial_schur/algebra/eigen/targets.py
author      :   Maksymilian Kliczkowski
-------------------------------------------------------
'''

from enum import Enum, unique
from typing import Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

_TARGET_ALIASES = {
    'largest_magnitude'     : 'LM',
    'smallest_magnitude'    : 'SM',
    'largest_real'          : 'LR',
    'smallest_real'         : 'SR',
    'largest_imag'          : 'LI',
    'smallest_imag'         : 'SI',
}

@unique
class Target(Enum):
    '''
    Which eigenvalues are wanted.

    - LM : largest magnitude (default)
    - SM : smallest magnitude
    - LR : largest real part
    - SR : smallest real part
    - LI : largest imaginary part, in absolute value
    - SI : smallest imaginary part, in absolute value
    '''
    LM = 'LM'
    SM = 'SM'
    LR = 'LR'
    SR = 'SR'
    LI = 'LI'
    SI = 'SI'

    def __str__(self):
        return self.value

    # ----------------------------------------------------------------

    def key(self, values: ArrayLike) -> NDArray:
        '''
        Sorting key of ``values``: larger is more wanted.
        '''
        values = np.asarray(values)
        if self is Target.LM:
            return np.abs(values)
        if self is Target.SM:
            return -np.abs(values)
        if self is Target.LR:
            return np.real(values).astype(float)
        if self is Target.SR:
            return -np.real(values).astype(float)
        if self is Target.LI:
            return np.abs(np.imag(values)).astype(float)
        return -np.abs(np.imag(values)).astype(float)

    def argsort(self, values: ArrayLike) -> NDArray:
        '''
        Stable permutation ordering ``values`` most wanted first; ties keep
        their original order.
        '''
        return np.argsort(-self.key(values), kind='stable')

    # ----------------------------------------------------------------

    @classmethod
    def from_value(cls, which: Union['Target', str]) -> 'Target':
        '''
        Accept a ``Target`` or its name ('LM', 'lm', 'largest_magnitude', ...).
        '''
        if isinstance(which, cls):
            return which
        if not isinstance(which, str):
            raise ValueError(f"Invalid target {which!r}, expected one of {[t.value for t in cls]}")
        name = which.strip()
        name = _TARGET_ALIASES.get(name.lower(), name.upper())
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"Invalid target {which!r}, expected one of {[t.value for t in cls]}") from None

# -----------------------------------------------------------------------
#! EOF
# -----------------------------------------------------------------------
