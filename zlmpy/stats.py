"""
Statistical tests for hurdle models.

``linear_hypothesis`` (Wald) and ``drop1`` (likelihood ratio for dropping a
term) test one fitted sub-model. ``zlm_test`` runs one of them on both parts
of a :class:`~zlmpy.zlm.ZlmModel` and combines them into a hurdle test.
"""

import warnings
from typing import Union

import numpy as np
import pandas as pd
from scipy import stats

from .backends import CANONICAL_METRIC_NAMES, METRIC_NAMES, FittedModel
from .errors import FitError, InvalidTestTypeError, UnsupportedLRTError, ZlmWarning
from .hypothesis import Hypothesis, hypothesis_matrix
from .results import HurdleTestResult
from .zlm import ZlmModel, is_empty_fit

TEST_TYPES = ("Wald", "LRT")

# drop1 statistic column by family of the tested model
_DROP1_STAT = {"gaussian": "scaled dev.", "binomial": "LRT"}


def linear_hypothesis(
    fit: FittedModel,
    hypothesis: Union[str, list, np.ndarray, Hypothesis],
    test: str = "Chisq",
    singular_ok: bool = True,
) -> pd.DataFrame:
    """
    Wald test of a linear hypothesis on the coefficients of ``fit``.

    Parameters
    ----------
    fit : FittedModel
        Fitted model
    hypothesis : str, list, numpy.ndarray or Hypothesis
        Hypothesis to test, see :mod:`zlmpy.hypothesis`
    test : str
        Chi-squared test name of the backend convention ('Chisq' for plain
        models, 'chisq' for mixed-effects models) or 'F'
    singular_ok : bool
        Use a pseudo-inverse when the hypothesis covariance is singular

    Returns
    -------
    pd.DataFrame
        Rows 'restricted' and 'full'; columns 'Res.Df', 'Df', and the test
        statistic and p-value named after ``test``
    """
    if is_empty_fit(fit):
        raise FitError("Cannot test a model without coefficients or residual degrees of freedom")
    names = METRIC_NAMES[fit.kind]
    if test not in (names.chisq, "F"):
        raise ValueError(f"test must be {names.chisq!r} or 'F' for {fit.kind.value} models, got {test!r}")

    coef = fit.coef
    L, c = hypothesis_matrix(hypothesis, coef.index)
    b = coef.to_numpy(dtype=float)
    V = fit.cov_params.loc[coef.index, coef.index].to_numpy(dtype=float)

    diff = L @ b - c
    LVL = L @ V @ L.T
    if singular_ok:
        inv = np.linalg.pinv(LVL)
    else:
        inv = np.linalg.inv(LVL)
    q = int(np.linalg.matrix_rank(L))
    statistic = float(diff @ inv @ diff)

    if test == "F":
        statistic = statistic / q
        pvalue = stats.f.sf(statistic, q, fit.df_resid)
        columns = ["Res.Df", "Df", "F", "Pr(>F)"]
    else:
        pvalue = stats.chi2.sf(statistic, q)
        columns = ["Res.Df", "Df", names.chisq, names.pvalue]

    return pd.DataFrame(
        [[fit.df_resid + q, np.nan, np.nan, np.nan], [fit.df_resid, q, statistic, pvalue]],
        index=["restricted", "full"],
        columns=columns,
    )


def drop1(fit: FittedModel, term: str) -> pd.DataFrame:
    """
    Likelihood ratio test for dropping ``term`` from ``fit``.

    The model is refit without the term on the same rows. The statistic is
    the deviance difference scaled by the dispersion of the full model.

    Parameters
    ----------
    fit : FittedModel
        Fitted model supporting ``update``
    term : str
        Fixed-effect term of the formula

    Returns
    -------
    pd.DataFrame
        Rows '<none>' and ``term``; columns 'Df', 'Deviance', 'AIC', the
        statistic ('scaled dev.' for gaussian, 'LRT' for binomial) and
        'Pr(>Chi)'
    """
    if not fit.supports_drop_term:
        raise TypeError(f"{type(fit).__name__} does not support drop-term tests")
    reduced = fit.update(fit.formula.drop_term(term))

    scale = fit.scale if fit.family == "gaussian" else 1.0
    statistic = max((reduced.deviance - fit.deviance) / scale, 0.0)
    df = fit.rank - reduced.rank
    pvalue = stats.chi2.sf(statistic, df)

    return pd.DataFrame(
        {
            "Df": [np.nan, df],
            "Deviance": [fit.deviance, reduced.deviance],
            "AIC": [fit.aic, reduced.aic],
            _DROP1_STAT[fit.family]: [np.nan, statistic],
            "Pr(>Chi)": [np.nan, pvalue],
        },
        index=["<none>", term],
    )


def _drop1_table(fit, term, chisq, pvalue):
    tab = drop1(fit, term)[["Df", _DROP1_STAT[fit.family], "Pr(>Chi)"]].copy()
    tab.columns = ["Df", chisq, pvalue]
    tab.insert(0, "Res.Df", np.nan)
    return tab


def _lrt_term(hypothesis):
    if isinstance(hypothesis, str):
        return hypothesis
    if isinstance(hypothesis, Hypothesis):
        hypothesis = hypothesis.hypothesis
    if isinstance(hypothesis, (list, tuple)) and len(hypothesis) == 1 and isinstance(hypothesis[0], str):
        return hypothesis[0]
    raise UnsupportedLRTError(
        "Currently only support testing single factors when type='LRT'"
    )


def check_test_type(type):
    if not isinstance(type, str) or type not in TEST_TYPES:
        raise InvalidTestTypeError("'type' must equal 'Wald' or 'LRT'")


def zlm_test(
    model: ZlmModel,
    hypothesis: Union[str, list, np.ndarray, Hypothesis],
    type: str = "Wald",
    silent: bool = True,
) -> HurdleTestResult:
    """
    Test a hypothesis on both parts of a hurdle model.

    The continuous and discrete parts are tested separately and combined:
    the hurdle Df and Chisq are their sums and its p-value is recomputed
    from the summed statistic. A continuous test that fails (for instance
    on an empty continuous fit) contributes zeros with NaN p-values.

    Parameters
    ----------
    model : ZlmModel
        Output of :func:`zlmpy.zlm`
    hypothesis : str, list, numpy.ndarray or Hypothesis
        Wald hypothesis, or the single term to drop when ``type='LRT'``
    type : str
        'Wald' or 'LRT'
    silent : bool
        If False, warn when the continuous test fails

    Returns
    -------
    HurdleTestResult
        Test results for the disc, cont and hurdle sources
    """
    check_test_type(type)
    if type == "LRT":
        term = _lrt_term(hypothesis)
        if not model.disc.supports_drop_term:
            raise UnsupportedLRTError("Currently only support type='LRT' with glm fits")

    names = METRIC_NAMES[model.disc.kind]

    cont = None
    cont_error = None
    if type == "Wald":
        try:
            cont = linear_hypothesis(model.cont, hypothesis, test=names.chisq, singular_ok=True)
        except Exception as e:
            cont_error = e
        disc = linear_hypothesis(model.disc, hypothesis, test=names.chisq, singular_ok=True)
    else:
        try:
            if model.cont.df_resid == 0:
                raise FitError("No degrees of freedom left")
            cont = _drop1_table(model.cont, term, names.chisq, names.pvalue)
        except Exception as e:
            cont_error = e
        disc = _drop1_table(model.disc, term, names.chisq, names.pvalue)

    cont_failed = cont is None or cont.shape != disc.shape
    if cont_failed:
        if not silent:
            reason = cont_error if cont_error is not None else "shape mismatch"
            warnings.warn(f"Continuous test failed ({reason}); using zero contribution", ZlmWarning, stacklevel=2)
        cont = pd.DataFrame(0.0, index=disc.index, columns=disc.columns)
        cont[names.pvalue] = np.nan

    d = disc.to_numpy(dtype=float)
    c = cont.to_numpy(dtype=float)
    values = np.stack([d, c, d + c], axis=-1)

    metrics = list(disc.columns)
    i_df = metrics.index("Df")
    i_chisq = metrics.index(names.chisq)
    i_p = metrics.index(names.pvalue)
    with np.errstate(invalid="ignore"):
        values[:, i_p, 2] = [
            stats.chi2.sf(values[i, i_chisq, 2], values[i, i_df, 2]) for i in range(values.shape[0])
        ]

    canonical = {names.chisq: CANONICAL_METRIC_NAMES.chisq, names.pvalue: CANONICAL_METRIC_NAMES.pvalue}
    metrics = [canonical.get(m, m) for m in metrics]

    return HurdleTestResult(values, rows=disc.index, metrics=metrics, type=type, cont_failed=cont_failed)
