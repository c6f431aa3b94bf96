"""
Hurdle model fitting for a single response variable.

The zero process is modeled as a logistic regression of ``response > 0`` on
the covariates over all rows, and the positive values as a linear regression
on the rows where the response is positive.
"""

import warnings
from typing import Callable, Optional, Union

import pandas as pd
import patsy

from .backends import EmptyFit, FittedModel, glm
from .errors import InvalidFormulaError, MissingDataError, ZlmWarning
from .formula import Formula, as_formula

POSITIVE = "pos"


class ZlmModel:
    """
    Fitted hurdle model.

    Attributes
    ----------
    cont : FittedModel
        Linear model of the positive values; an :class:`EmptyFit` when the
        positive part could not be fit
    disc : FittedModel
        Logistic model of positivity over all rows
    formula : Formula
        Formula of the continuous part
    """

    def __init__(self, cont: FittedModel, disc: FittedModel, formula: Formula):
        self.cont = cont
        self.disc = disc
        self.formula = formula

    @property
    def cont_is_empty(self) -> bool:
        return is_empty_fit(self.cont)

    def summary(self) -> dict:
        """statsmodels summaries of both parts (None for an empty part)."""
        return {"cont": self.cont.summary(), "disc": self.disc.summary()}

    def __repr__(self) -> str:
        return f"ZlmModel: {self.formula}\n  cont: {self.cont!r}\n  disc: {self.disc!r}"


def is_empty_fit(fit: FittedModel) -> bool:
    """True if ``fit`` has no coefficients or no residual degrees of freedom."""
    return len(fit.coef) == 0 or fit.df_resid == 0


def _response(formula: Formula, data: pd.DataFrame) -> pd.Series:
    """Response vector, after checking response and predictors for missing values."""
    name = formula.response
    # grouping bars flattened so patsy can build the frame
    shape = formula.sanitized()
    y, _ = patsy.dmatrices(str(shape), data, NA_action="drop", return_type="dataframe")
    if len(y) != len(data):
        raise MissingDataError("NAs in response or predictors not allowed; please remove before fitting")
    if y.shape[1] != 1:
        raise InvalidFormulaError(f"Response {name!r} must be numeric")
    return y.iloc[:, 0]


def _fit_continuous(fit_fn, formula, data, silent, **kwargs) -> FittedModel:
    try:
        return fit_fn(formula, data, family="gaussian", subset=POSITIVE, **kwargs)
    except Exception as e:
        if not silent:
            warnings.warn(f"Some factors were not present among the positive part: {e}", ZlmWarning, stacklevel=3)
        return EmptyFit(formula=formula, family="gaussian", error=e)


def zlm(
    formula: Union[str, Formula],
    data: pd.DataFrame,
    fit_fn: Callable = glm,
    silent: bool = True,
    subset: Optional[object] = None,
    **kwargs,
) -> ZlmModel:
    """
    Fit a hurdle model on zero-inflated continuous data.

    Parameters
    ----------
    formula : str or Formula
        Formula with an unadorned response name on the left hand side,
        e.g. ``'et ~ condition'``
    data : pandas.DataFrame
        Data in which the formula is evaluated
    fit_fn : callable
        Backend taking ``(formula, data, family=..., subset=...)``, e.g.
        :func:`zlmpy.glm` or :func:`zlmpy.glmer`
    silent : bool
        If False, warn when the continuous part cannot be fit
    subset : optional
        Ignored
    **kwargs
        Passed to ``fit_fn``

    Returns
    -------
    ZlmModel
        Model with a discrete and a continuous part

    Raises
    ------
    InvalidFormulaError
        If the left hand side is not a bare variable name
    MissingDataError
        If the response or predictors contain missing values
    """
    if subset is not None:
        warnings.warn("subset ignored", ZlmWarning, stacklevel=2)
    if not isinstance(data, pd.DataFrame):
        raise TypeError("'data' must be a pandas DataFrame")

    formula = as_formula(formula)

    y = _response(formula, data)
    data = data.copy()
    data[POSITIVE] = (y.to_numpy() > 0).astype(float)

    cont = _fit_continuous(fit_fn, formula, data, silent, **kwargs)
    disc = fit_fn(formula.with_response(POSITIVE), data, family="binomial", **kwargs)

    return ZlmModel(cont=cont, disc=disc, formula=formula)
