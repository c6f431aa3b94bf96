"""Exceptions and warnings raised by zlmpy."""


class ZlmError(Exception):
    """Base class for all zlmpy errors."""


class InvalidFormulaError(ZlmError, ValueError):
    """The formula cannot be used for a hurdle fit."""


class MissingDataError(ZlmError, ValueError):
    """Missing values in the response or predictors."""


class InvalidTestTypeError(ZlmError, ValueError):
    """Test type is neither 'Wald' nor 'LRT'."""


class UnsupportedLRTError(ZlmError, ValueError):
    """Likelihood ratio test requested in an unsupported configuration."""


class FitError(ZlmError, RuntimeError):
    """A fitting backend could not fit the model."""


class GroupFitError(ZlmError, RuntimeError):
    """Fitting or testing failed for one variable of a batch."""

    def __init__(self, primerid, cause):
        self.primerid = primerid
        self.cause = cause
        super().__init__(f"Fitting failed for {primerid!r}: {cause}")

    def __reduce__(self):
        # worker processes send exceptions back pickled
        return (type(self), (self.primerid, self.cause))


class ZlmWarning(UserWarning):
    """A sub-model was degraded rather than fit or tested."""
