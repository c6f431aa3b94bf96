"""zlmpy: hurdle models for zero-inflated single cell assay data

Fits a logistic regression for zero vs. positive measurements and a linear
regression for the positive measurements, tests hypotheses on both parts,
combines them into a hurdle test, and does so for every gene of an assay.
"""

__version__ = "0.1.0"

from ._config import get_n_jobs, get_parallel_backend, set_n_jobs, set_parallel_backend
from .assay import zlm_assay
from .backends import BackendKind, EmptyFit, FittedModel, glm, glmer
from .errors import (
    FitError,
    GroupFitError,
    InvalidFormulaError,
    InvalidTestTypeError,
    MissingDataError,
    UnsupportedLRTError,
    ZlmError,
    ZlmWarning,
)
from .formula import Formula
from .hypothesis import CoefficientHypothesis, Hypothesis
from .io import from_matrix, melt
from .results import HurdleTestResult, ZlmBatchResult
from .stats import drop1, linear_hypothesis, zlm_test
from .zlm import ZlmModel, is_empty_fit, zlm

__all__ = [
    "BackendKind",
    "CoefficientHypothesis",
    "EmptyFit",
    "FitError",
    "FittedModel",
    "Formula",
    "GroupFitError",
    "HurdleTestResult",
    "Hypothesis",
    "InvalidFormulaError",
    "InvalidTestTypeError",
    "MissingDataError",
    "UnsupportedLRTError",
    "ZlmBatchResult",
    "ZlmError",
    "ZlmModel",
    "ZlmWarning",
    "drop1",
    "from_matrix",
    "get_n_jobs",
    "get_parallel_backend",
    "glm",
    "glmer",
    "is_empty_fit",
    "linear_hypothesis",
    "melt",
    "set_n_jobs",
    "set_parallel_backend",
    "zlm",
    "zlm_assay",
    "zlm_test",
]
