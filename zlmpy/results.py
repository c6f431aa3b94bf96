"""
Labelled result containers for hurdle tests.
"""

import numpy as np
import pandas as pd

SOURCES = ("disc", "cont", "hurdle")


class HurdleTestResult:
    """
    Test of one hypothesis on both parts of a hurdle model.

    Values are indexed by (row, metric, source). Rows are the rows of the
    underlying test table (restricted/full model for Wald tests,
    ``<none>``/dropped term for likelihood ratio tests), metrics are
    ``Res.Df, Df, Chisq, Pr(>Chisq)`` and sources are ``disc, cont, hurdle``.
    """

    def __init__(self, values, rows, metrics, type="Wald", cont_failed=False):
        self.values = np.asarray(values, dtype=float)
        self.rows = list(rows)
        self.metrics = list(metrics)
        self.sources = list(SOURCES)
        self.type = type
        self.cont_failed = cont_failed
        if self.values.shape != (len(self.rows), len(self.metrics), len(self.sources)):
            raise ValueError(f"values shape {self.values.shape} does not match labels")

    @property
    def shape(self):
        return self.values.shape

    def layer(self, source):
        """Table (rows x metrics) for one source."""
        k = self.sources.index(source)
        return pd.DataFrame(self.values[:, :, k], index=self.rows, columns=self.metrics)

    @property
    def disc(self):
        return self.layer("disc")

    @property
    def cont(self):
        return self.layer("cont")

    @property
    def hurdle(self):
        return self.layer("hurdle")

    def get(self, row, metric, source):
        if isinstance(row, int):
            i = row
        else:
            i = self.rows.index(row)
        return self.values[i, self.metrics.index(metric), self.sources.index(source)]

    def tested(self, metrics=("Df", "Chisq", "Pr(>Chisq)")):
        """Metrics (rows) by source (columns) for the tested hypothesis row."""
        idx = [self.metrics.index(m) for m in metrics]
        return pd.DataFrame(self.values[1, idx, :], index=list(metrics), columns=self.sources)

    def to_frame(self):
        """Long table with one row per (row, metric) and one column per source."""
        index = pd.MultiIndex.from_product([self.rows, self.metrics], names=["row", "metric"])
        return pd.DataFrame(
            self.values.reshape(-1, len(self.sources)), index=index, columns=self.sources
        )

    def __repr__(self):
        return f"HurdleTestResult(type={self.type!r})\n{self.tested()}"


class ZlmBatchResult:
    """
    Hurdle tests for many variables.

    Attributes
    ----------
    tests : numpy.ndarray
        Array with dimensions (n_primerids, n_metrics, 3)
    primerids : list
        Variable ids, sorted, one per entry of ``tests``
    metrics : list of str
        ``Df, Chisq, Pr(>Chisq)``
    sources : list of str
        ``disc, cont, hurdle``
    models : dict or None
        ZlmModel per primerid when models were kept
    errors : dict
        Exception per primerid for variables that failed (collect mode)
    """

    def __init__(self, tests, primerids, metrics, models=None, errors=None):
        self.tests = np.asarray(tests, dtype=float).reshape(len(primerids), len(metrics), len(SOURCES))
        self.primerids = list(primerids)
        self.metrics = list(metrics)
        self.sources = list(SOURCES)
        self.models = models
        self.errors = errors or {}

    def __len__(self):
        return len(self.primerids)

    def __getitem__(self, primerid):
        i = self.primerids.index(primerid)
        return pd.DataFrame(self.tests[i], index=self.metrics, columns=self.sources)

    def layer(self, source):
        """Table (primerids x metrics) for one source."""
        k = self.sources.index(source)
        return pd.DataFrame(self.tests[:, :, k], index=self.primerids, columns=self.metrics)

    def to_frame(self):
        """Long table with columns primerid, test.type and one column per metric."""
        frames = []
        for source in self.sources:
            df = self.layer(source)
            df.index.name = "primerid"
            df = df.reset_index()
            df.insert(1, "test.type", source)
            frames.append(df)
        return pd.concat(frames, ignore_index=True)

    def __repr__(self):
        return (
            f"ZlmBatchResult: {len(self.primerids)} primerids, "
            f"{len(self.errors)} failed, models kept: {self.models is not None}"
        )
