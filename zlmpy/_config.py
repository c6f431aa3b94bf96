"""Parallel execution settings for zlmpy.

Resolution order (first match wins):
    1. Programmatic override via :func:`set_n_jobs` / :func:`set_parallel_backend`.
    2. The ``ZLMPY_N_JOBS`` / ``ZLMPY_PARALLEL_BACKEND`` environment variables.
    3. Defaults: all cores (``-1``) with the ``"loky"`` joblib backend.

Examples
--------
Run batches on four worker threads from the shell::

    export ZLMPY_N_JOBS=4
    export ZLMPY_PARALLEL_BACKEND=threading

or programmatically::

    import zlmpy
    zlmpy.set_n_jobs(4)
    zlmpy.set_parallel_backend("threading")
"""

from __future__ import annotations

import os

_VALID_BACKENDS = {"loky", "threading", "multiprocessing"}

_DEFAULT_N_JOBS = -1
_DEFAULT_BACKEND = "loky"

_n_jobs_override: int | None = None
_backend_override: str | None = None


def get_n_jobs() -> int:
    """Return the number of workers used when ``parallel=True``."""
    if _n_jobs_override is not None:
        return _n_jobs_override

    env = os.environ.get("ZLMPY_N_JOBS", "").strip()
    if env:
        try:
            return _validate_n_jobs(int(env))
        except ValueError:
            raise ValueError(f"ZLMPY_N_JOBS must be a non-zero integer, got {env!r}") from None

    return _DEFAULT_N_JOBS


def set_n_jobs(n_jobs: int | None) -> None:
    """Override the worker count; ``None`` restores the default resolution."""
    global _n_jobs_override
    _n_jobs_override = None if n_jobs is None else _validate_n_jobs(n_jobs)


def get_parallel_backend() -> str:
    """Return the joblib backend used when ``parallel=True``."""
    if _backend_override is not None:
        return _backend_override

    env = os.environ.get("ZLMPY_PARALLEL_BACKEND", "").strip().lower()
    if env:
        if env not in _VALID_BACKENDS:
            raise ValueError(
                f"ZLMPY_PARALLEL_BACKEND must be one of "
                f"{', '.join(sorted(_VALID_BACKENDS))}, got {env!r}"
            )
        return env

    return _DEFAULT_BACKEND


def set_parallel_backend(name: str | None) -> None:
    """Override the joblib backend.

    Parameters
    ----------
    name : str or None
        One of ``"loky"``, ``"threading"`` or ``"multiprocessing"``
        (case-insensitive). ``None`` restores the default resolution.
    """
    global _backend_override
    if name is None:
        _backend_override = None
        return
    key = name.strip().lower()
    if key not in _VALID_BACKENDS:
        raise ValueError(
            f"Unknown parallel backend {name!r}. "
            f"Choose from: {', '.join(sorted(_VALID_BACKENDS))}."
        )
    _backend_override = key


def _validate_n_jobs(n_jobs: int) -> int:
    n_jobs = int(n_jobs)
    if n_jobs == 0:
        raise ValueError("n_jobs must be a positive integer or negative (all cores)")
    return n_jobs
