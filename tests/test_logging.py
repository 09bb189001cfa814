'''
Tests of the console logger used by the restart drivers.

File        : tests/test_logging.py
Author      : Maksymilian Kliczkowski
License     : MIT
'''

import logging

import numpy as np

# -------------------------------------------------------------------

def test_logger_console_output(capsys):
    from partial_schur.common.flog import Logger, log_phase_summary

    logger = Logger(name="partial_schur_test", lvl=logging.DEBUG)

    @logger.timing
    def double(x):
        return 2 * x

    assert double(3) == 6
    logger.title("IRAM", 30, '=')
    logger.info("hidden", verbose=False)
    log_phase_summary(logger, {'expand': 0.1, 'restart': 0.05}, 0.2, title="IRAM",
                      extra_info=["reason=converged"])

    out = capsys.readouterr().out
    assert "Finished 'double'" in out
    assert "=IRAM=" in out
    assert "hidden" not in out
    assert "expand" in out and "Total" in out
    assert "reason=converged" in out

def test_verbose_run_logs_cycles(capsys):
    from partial_schur.common.flog import Logger
    from partial_schur.algebra.eigen.iram import partial_schur

    logger  = Logger(name="partial_schur_verbose", lvl=logging.INFO)
    A       = np.diag(0.5 ** np.arange(30.0))
    res     = partial_schur(A, nev=2, tol=1e-10, maxiter=50, logger=logger, verbose=True)
    out     = capsys.readouterr().out
    assert res.converged
    assert "cycle" in out
    assert "mvproducts" in out

def test_solver_run_is_timed(capsys):
    from partial_schur.common.flog import Logger
    from partial_schur.algebra.eigen.iram import IRAMEigensolver

    logger  = Logger(name="partial_schur_timed", lvl=logging.DEBUG)
    A       = np.diag(0.5 ** np.arange(30.0))
    solver  = IRAMEigensolver(k=2, tol=1e-10, maxiter=50, seed=1, logger=logger)
    result  = solver.solve(A)
    out     = capsys.readouterr().out
    assert result.converged
    assert "Starting 'partial_schur'" in out
    assert "Finished 'partial_schur'" in out

# -------------------------------------------------------------------
#! End of file
# -------------------------------------------------------------------
