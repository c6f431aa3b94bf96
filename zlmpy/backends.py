"""Fitting backends for the two parts of a hurdle model.

A backend is any callable ``fit_fn(formula, data, family, subset=None, **kwargs)``
returning a :class:`FittedModel`. Two are provided:

glm
    Fixed-effects generalized linear model (statsmodels ``GLM``).
glmer
    Mixed-effects model with random intercepts given as ``(1 | group)`` terms
    (statsmodels ``MixedLM`` for the gaussian family and
    ``BinomialBayesMixedGLM`` for the binomial family).

Every fitted model declares a :class:`BackendKind`, which selects the metric
naming convention used by the Wald test (see :data:`METRIC_NAMES`).
"""

import enum
from collections import namedtuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
import statsmodels.formula.api as smf
from statsmodels.genmod.bayes_mixed_glm import BinomialBayesMixedGLM

from .errors import FitError
from .formula import as_formula


class BackendKind(enum.Enum):
    PLAIN = "plain"
    MIXED_EFFECTS = "mixed_effects"


MetricNames = namedtuple("MetricNames", ["chisq", "pvalue"])

METRIC_NAMES = {
    BackendKind.PLAIN: MetricNames("Chisq", "Pr(>Chisq)"),
    BackendKind.MIXED_EFFECTS: MetricNames("chisq", "Pr(> Chisq)"),
}

CANONICAL_METRIC_NAMES = METRIC_NAMES[BackendKind.PLAIN]

_FAMILIES = {
    "gaussian": sm.families.Gaussian,
    "binomial": sm.families.Binomial,
}


class FittedModel:
    """A fitted sub-model.

    Attributes
    ----------
    coef : pandas.Series
        Fixed-effect coefficients, indexed by name
    cov_params : pandas.DataFrame
        Covariance matrix of ``coef``
    df_resid : float
        Residual degrees of freedom
    kind : BackendKind
        Which family of backend produced the fit
    supports_drop_term : bool
        Whether :func:`zlmpy.stats.drop1` can refit this model
    """

    kind = BackendKind.PLAIN
    supports_drop_term = False

    def __init__(self, result, formula, family, coef, cov_params, df_resid,
                 deviance=np.nan, loglik=np.nan, scale=np.nan, aic=np.nan,
                 data=None, subset=None, fit_kwargs=None):
        self.result = result
        self.formula = formula
        self.family = family
        self.coef = coef
        self.cov_params = cov_params
        self.df_resid = float(df_resid)
        self.deviance = deviance
        self.loglik = loglik
        self.scale = scale
        self.aic = aic
        self.data = data
        self.subset = subset
        self.fit_kwargs = fit_kwargs or {}

    @property
    def rank(self):
        return len(self.coef)

    def update(self, formula):
        """Refit on the same rows with a different formula."""
        raise NotImplementedError

    def summary(self):
        return self.result.summary()

    def __repr__(self):
        return f"{type(self).__name__}({self.family}, {self.formula})"


class GLMFit(FittedModel):
    kind = BackendKind.PLAIN
    supports_drop_term = True

    def update(self, formula):
        return glm(formula, self.data, family=self.family, subset=self.subset, **self.fit_kwargs)


class MixedFit(FittedModel):
    kind = BackendKind.MIXED_EFFECTS
    supports_drop_term = False


class EmptyFit(FittedModel):
    """Placeholder for a sub-model that could not be fit.

    It has no coefficients and no residual degrees of freedom; ``error``
    keeps the exception raised by the backend, if any.
    """

    def __init__(self, formula=None, family="gaussian", error=None):
        super().__init__(
            result=None,
            formula=formula,
            family=family,
            coef=pd.Series(dtype=float),
            cov_params=pd.DataFrame(dtype=float),
            df_resid=0,
        )
        self.error = error

    def update(self, formula):
        raise FitError("Cannot refit an empty model")

    def summary(self):
        return None

    def __repr__(self):
        return f"EmptyFit({self.error!r})"


def _check_family(family):
    if family not in _FAMILIES:
        raise ValueError(f"family must be one of {sorted(_FAMILIES)}, got {family!r}")


def _model_frame(data, subset=None):
    """Copy of ``data`` restricted to ``subset``.

    Text columns become categoricals before subsetting so that every subset
    carries the full set of levels.
    """
    frame = data.copy()
    for col in frame.columns:
        series = frame[col]
        if isinstance(series.dtype, pd.CategoricalDtype):
            continue
        if pd.api.types.is_object_dtype(series) or pd.api.types.is_string_dtype(series):
            frame[col] = series.astype("category")

    if subset is not None:
        if isinstance(subset, str):
            mask = frame[subset].astype(bool).to_numpy()
        else:
            mask = np.asarray(subset, dtype=bool)
        frame = frame[mask]

    if len(frame) == 0:
        raise FitError("No observations to fit")
    return frame


def _check_rank(exog, names):
    exog = np.asarray(exog, dtype=float)
    rank = np.linalg.matrix_rank(exog)
    if rank < exog.shape[1]:
        raise FitError(
            f"Design matrix is rank deficient (rank {rank} < {exog.shape[1]} columns: "
            f"{', '.join(names)}); some covariate has no variation in the fitted rows"
        )


def glm(formula, data, family="gaussian", subset=None, **kwargs):
    """Fit a generalized linear model.

    Parameters
    ----------
    formula : str or Formula
        Model formula without grouping terms
    data : pandas.DataFrame
        Data in which the formula is evaluated
    family : str
        'gaussian' or 'binomial'
    subset : str or array-like of bool, optional
        Column name or mask selecting the rows to fit
    **kwargs
        Passed to ``statsmodels.genmod.GLM.fit``

    Returns
    -------
    GLMFit
        Fitted model
    """
    formula = as_formula(formula)
    _check_family(family)
    if formula.has_grouping:
        raise ValueError("Grouping terms require a mixed-effects backend such as glmer")

    frame = _model_frame(data, subset)
    model = smf.glm(str(formula), data=frame, family=_FAMILIES[family]())
    _check_rank(model.exog, model.exog_names)
    result = model.fit(**kwargs)

    return GLMFit(
        result,
        formula=formula,
        family=family,
        coef=result.params,
        cov_params=result.cov_params(),
        df_resid=result.df_resid,
        deviance=result.deviance,
        loglik=result.llf,
        scale=result.scale,
        aic=result.aic,
        data=data,
        subset=subset,
        fit_kwargs=kwargs,
    )


def glmer(formula, data, family="gaussian", subset=None, **kwargs):
    """Fit a mixed-effects model.

    The first grouping term defines the MixedLM groups (random slopes are
    allowed there); further grouping terms become variance components. The
    binomial family only supports random intercepts.

    Parameters
    ----------
    formula : str or Formula
        Model formula with at least one ``(expr | group)`` term
    data : pandas.DataFrame
        Data in which the formula is evaluated
    family : str
        'gaussian' or 'binomial'
    subset : str or array-like of bool, optional
        Column name or mask selecting the rows to fit
    **kwargs
        Passed to ``MixedLM.fit`` or ``BinomialBayesMixedGLM.fit_map``

    Returns
    -------
    MixedFit
        Fitted model
    """
    formula = as_formula(formula)
    _check_family(family)
    groups = formula.grouping_terms
    if not groups:
        raise ValueError("glmer requires at least one grouping term such as '(1 | donor)'")

    frame = _model_frame(data, subset)
    fixed = str(formula.fixed_effects())

    if family == "gaussian":
        first, rest = groups[0], groups[1:]
        if any(g.random_slopes for g in rest):
            raise ValueError("Random slopes are only supported on the first grouping term")
        re_formula = None
        if first.random_slopes:
            re_formula = "~ " + " + ".join(["1"] + first.random_slopes)
        vc_formula = {g.group: f"0 + C({g.group})" for g in rest} or None
        model = smf.mixedlm(fixed, frame, groups=first.group,
                            re_formula=re_formula, vc_formula=vc_formula)
        _check_rank(model.exog, model.exog_names)
        result = model.fit(**kwargs)
        k = len(result.fe_params)
        coef = result.fe_params
        cov_params = result.cov_params().iloc[:k, :k]
        loglik = result.llf
        scale = result.scale
    else:
        if any(g.random_slopes for g in groups):
            raise ValueError("Only random intercepts are supported for the binomial family")
        vc_formulas = {g.group: f"0 + C({g.group})" for g in groups}
        model = BinomialBayesMixedGLM.from_formula(fixed, vc_formulas, frame)
        k = model.k_fep
        names = list(model.exog_names)[:k]
        _check_rank(model.exog, names)
        result = model.fit_map(**kwargs)
        coef = pd.Series(np.asarray(result.params)[:k], index=names)
        cov = result.cov_params() if callable(result.cov_params) else result.cov_params
        cov = np.asarray(cov)
        if cov.ndim == 1:
            cov = np.diag(cov)
        cov_params = pd.DataFrame(cov[:k, :k], index=names, columns=names)
        loglik = np.nan
        scale = 1.0

    return MixedFit(
        result,
        formula=formula,
        family=family,
        coef=coef,
        cov_params=cov_params,
        df_resid=len(frame) - k,
        deviance=-2 * loglik,
        loglik=loglik,
        scale=scale,
        data=data,
        subset=subset,
        fit_kwargs=kwargs,
    )
