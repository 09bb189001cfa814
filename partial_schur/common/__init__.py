"""
Common utilities of partial_schur.

Modules:
    - flog : Logger class with console and file output, global logger

-----------------------------------------------------------
Author          : Maksymilian Kliczkowski
-----------------------------------------------------------
"""

import importlib

_LAZY_IMPORTS = {
    'Logger'                : ('.flog', 'Logger'),
    'Colors'                : ('.flog', 'Colors'),
    'get_global_logger'     : ('.flog', 'get_global_logger'),
    'log_phase_summary'     : ('.flog', 'log_phase_summary'),
    'flog'                  : ('.flog', None),
}

_LOADED = {}

def __getattr__(name: str):
    """Lazy import handler - loads modules only when accessed."""
    if name in _LAZY_IMPORTS:
        if name not in _LOADED:
            module_path, attr_name  = _LAZY_IMPORTS[name]
            module                  = importlib.import_module(module_path, package=__name__)
            _LOADED[name]           = module if attr_name is None else getattr(module, attr_name)
        return _LOADED[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

def __dir__():
    """List available attributes for autocompletion."""
    return list(_LAZY_IMPORTS.keys())

__all__ = list(_LAZY_IMPORTS.keys())

####################################################################################################
#! EOF
####################################################################################################
