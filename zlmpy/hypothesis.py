"""Hypothesis specifications for Wald tests.

A hypothesis can be given as

* a coefficient name (``"groupB"``) or a term name (``"group"``), which
  tests that every coefficient of the term is zero,
* a linear constraint understood by patsy (``"groupB - groupC = 0"``),
* a list of the above, one constraint row each,
* a contrast matrix with one column per coefficient,
* a :class:`Hypothesis` or :class:`CoefficientHypothesis` object.
"""

import numpy as np
import patsy


class Hypothesis:
    """
    Linear constraints on the coefficients
    """
    def __init__(self, hypothesis):
        """
        Initialize a Hypothesis object

        Parameters
        ----------
        hypothesis : str or list of str
            Constraints in patsy syntax, e.g. ``"groupB = groupC"``
        """
        if isinstance(hypothesis, str):
            hypothesis = [hypothesis]
        self.hypothesis = list(hypothesis)

    def constraint(self, coef_names):
        """
        Resolve to a constraint ``L @ coef = c``

        Parameters
        ----------
        coef_names : sequence of str
            Coefficient names of the model being tested

        Returns
        -------
        tuple of numpy.ndarray
            ``L`` with shape (q, n_coef) and ``c`` with shape (q,)
        """
        return _linear_constraint(self.hypothesis, coef_names)

    def __len__(self):
        return len(self.hypothesis)

    def __repr__(self):
        return f"Hypothesis({self.hypothesis})"


class CoefficientHypothesis(Hypothesis):
    """
    Test that coefficients (or all coefficients of a term) are zero
    """
    def __init__(self, coefficients):
        """
        Initialize a CoefficientHypothesis object

        Parameters
        ----------
        coefficients : str or list of str
            Coefficient or term names
        """
        super().__init__(coefficients)
        self.coefficients = self.hypothesis

    def constraint(self, coef_names):
        coef_names = list(coef_names)
        rows = []
        for name in self.coefficients:
            for i in _coefficient_index(name, coef_names):
                row = np.zeros(len(coef_names))
                row[i] = 1
                rows.append(row)
        L = np.vstack(rows)
        return L, np.zeros(L.shape[0])

    def __repr__(self):
        return f"CoefficientHypothesis({self.coefficients})"


def _coefficient_index(name, coef_names):
    if name in coef_names:
        return [coef_names.index(name)]
    # categorical terms expand to one coefficient per level, e.g. group[T.B]
    idx = [i for i, c in enumerate(coef_names) if c.startswith(f"{name}[")]
    if not idx:
        raise ValueError(f"Coefficient {name} not found in model: {coef_names}")
    return idx


def _linear_constraint(constraints, coef_names):
    coef_names = list(coef_names)
    if not coef_names:
        raise ValueError("Model has no coefficients to test")
    try:
        lc = patsy.DesignInfo(coef_names).linear_constraint(constraints)
    except patsy.PatsyError as exc:
        raise ValueError(f"Cannot parse hypothesis {constraints} against {coef_names}: {exc}") from exc
    return np.asarray(lc.coefs, dtype=float), np.asarray(lc.constants, dtype=float).ravel()


def hypothesis_matrix(hypothesis, coef_names):
    """
    Resolve any hypothesis specification to ``(L, c)``

    Plain strings naming a coefficient or term are treated as a
    :class:`CoefficientHypothesis`; other strings as a :class:`Hypothesis`.

    Parameters
    ----------
    hypothesis : str, list of str, numpy.ndarray or Hypothesis
        Hypothesis to resolve
    coef_names : sequence of str
        Coefficient names of the model being tested

    Returns
    -------
    tuple of numpy.ndarray
        ``L`` with shape (q, n_coef) and ``c`` with shape (q,)
    """
    coef_names = list(coef_names)
    if isinstance(hypothesis, Hypothesis):
        return hypothesis.constraint(coef_names)
    if isinstance(hypothesis, np.ndarray):
        L = np.atleast_2d(np.asarray(hypothesis, dtype=float))
        if L.shape[1] != len(coef_names):
            raise ValueError(
                f"Contrast matrix has {L.shape[1]} columns but the model has {len(coef_names)} coefficients"
            )
        return L, np.zeros(L.shape[0])
    if isinstance(hypothesis, str):
        hypothesis = [hypothesis]

    Ls, cs = [], []
    for item in hypothesis:
        if _is_name(item, coef_names):
            L, c = CoefficientHypothesis(item).constraint(coef_names)
        else:
            L, c = Hypothesis(item).constraint(coef_names)
        Ls.append(L)
        cs.append(c)
    return np.vstack(Ls), np.concatenate(cs)


def _is_name(item, coef_names):
    return item in coef_names or any(c.startswith(f"{item}[") for c in coef_names)
