"""
Hurdle model fitting and testing for every gene of an assay.
"""

import logging
from typing import Callable, Optional, Union

import anndata
import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from ._config import get_n_jobs, get_parallel_backend
from .backends import glm
from .errors import GroupFitError, MissingDataError
from .formula import Formula, as_formula
from .io import melt
from .results import SOURCES, ZlmBatchResult
from .stats import check_test_type, zlm_test
from .zlm import zlm

logger = logging.getLogger(__name__)

RESULT_METRICS = ["Df", "Chisq", "Pr(>Chisq)"]

_ON_ERROR = ("raise", "collect")


def droplevels(data: pd.DataFrame) -> pd.DataFrame:
    """Copy of ``data`` with unused categories removed from categorical columns."""
    data = data.copy()
    for col in data.columns:
        if isinstance(data[col].dtype, pd.CategoricalDtype):
            data[col] = data[col].cat.remove_unused_categories()
    return data


# Function to fit and test a single gene
def fit_primerid(primerid, frame, formula, fit_fn, hypothesis, type, hypo_fn,
                 keep_models, silent, on_error, kwargs):
    try:
        model = zlm(formula, frame, fit_fn=fit_fn, silent=silent, **kwargs)
        if hypo_fn is not None:
            hypothesis = hypo_fn(model)
        test = zlm_test(model, hypothesis, type=type, silent=silent)
    except Exception as e:
        if on_error == "collect":
            return primerid, None, None, e
        raise GroupFitError(primerid, e) from e
    return primerid, (model if keep_models else None), test, None


def zlm_assay(
    formula: Union[str, Formula],
    data: Union[pd.DataFrame, anndata.AnnData],
    fit_fn: Callable = glm,
    hypothesis=None,
    type: str = "Wald",
    hypo_fn: Optional[Callable] = None,
    keep_models: bool = False,
    parallel: bool = False,
    drop_unused_levels: bool = True,
    silent: bool = True,
    on_error: str = "raise",
    n_jobs: Optional[int] = None,
    primerid: str = "primerid",
    layer: Optional[str] = None,
    **kwargs,
) -> ZlmBatchResult:
    """
    Fit and test a hurdle model for every gene.

    Parameters
    ----------
    formula : str or Formula
        Formula with the measurement on the left hand side, e.g.
        ``'value ~ condition'``
    data : pandas.DataFrame or anndata.AnnData
        Long-format table with one row per (gene, cell), or an AnnData that
        is melted with :func:`zlmpy.io.melt` (measurement column named after
        the formula response)
    fit_fn : callable
        Fitting backend, e.g. :func:`zlmpy.glm` or :func:`zlmpy.glmer`
    hypothesis : str, list, numpy.ndarray or Hypothesis, optional
        Hypothesis passed to :func:`zlmpy.zlm_test`
    type : str
        'Wald' or 'LRT'
    hypo_fn : callable, optional
        Function of the fitted ZlmModel returning the hypothesis to test;
        overrides ``hypothesis``
    keep_models : bool
        Keep the fitted ZlmModel of every gene
    parallel : bool
        Fit genes with joblib workers
    drop_unused_levels : bool
        Drop unused levels of categorical columns once, before grouping
    silent : bool
        Silence warnings about degraded continuous fits and the progress bar
    on_error : str
        'raise' stops at the first gene whose fit or test fails; 'collect'
        records the error in ``errors`` and continues
    n_jobs : int, optional
        Number of workers when ``parallel``; defaults to
        :func:`zlmpy.get_n_jobs`
    primerid : str
        Column identifying the gene
    layer : str, optional
        AnnData layer to melt
    **kwargs
        Passed to ``fit_fn``

    Returns
    -------
    ZlmBatchResult
        Tests with dimensions (n_genes, 3, 3) where:
        - First dimension: genes, sorted
        - Second dimension: metrics (Df, Chisq, Pr(>Chisq))
        - Third dimension: test types (disc, cont, hurdle)
    """
    check_test_type(type)
    formula = as_formula(formula)
    response = formula.response
    if hypothesis is None and hypo_fn is None:
        raise ValueError("Either 'hypothesis' or 'hypo_fn' must be given")
    if on_error not in _ON_ERROR:
        raise ValueError(f"on_error must be one of {_ON_ERROR}, got {on_error!r}")

    if isinstance(data, anndata.AnnData):
        data = melt(data, layer=layer, value_name=response)
    elif not isinstance(data, pd.DataFrame):
        raise TypeError("'data' must be a pandas DataFrame or an AnnData object")
    if primerid not in data.columns:
        raise KeyError(f"Column {primerid!r} not found in data")
    if data[primerid].isna().any():
        raise MissingDataError(f"Column {primerid!r} contains missing values")
    used = formula.variables(data.columns)
    if data[used].isna().any().any():
        raise MissingDataError("NAs in response or predictors not allowed; please remove before fitting")

    if drop_unused_levels:
        data = droplevels(data)

    groups = list(data.groupby(primerid, sort=True, observed=True))
    logger.info("Fitting %s for %d genes", formula, len(groups))

    args = (formula, fit_fn, hypothesis, type, hypo_fn, keep_models, silent, on_error, kwargs)
    progress = tqdm(groups, desc="Fitting genes", disable=silent)
    if parallel:
        n_jobs = n_jobs if n_jobs is not None else get_n_jobs()
        outcomes = Parallel(n_jobs=n_jobs, backend=get_parallel_backend())(
            delayed(fit_primerid)(key, frame, *args) for key, frame in progress
        )
    else:
        outcomes = [fit_primerid(key, frame, *args) for key, frame in progress]

    primerids = []
    tests = []
    models = {} if keep_models else None
    errors = {}
    for key, model, test, error in outcomes:
        if error is not None:
            errors[key] = error
            continue
        primerids.append(key)
        tests.append(test.tested(RESULT_METRICS).to_numpy())
        if keep_models:
            models[key] = model

    if errors:
        logger.warning("Fitting failed for %d of %d genes", len(errors), len(groups))

    tests = np.stack(tests) if tests else np.empty((0, len(RESULT_METRICS), len(SOURCES)))
    return ZlmBatchResult(tests, primerids, RESULT_METRICS, models=models, errors=errors)
