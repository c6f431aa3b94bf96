"""Structured model formulas.

A formula is kept as a response name and an ordered tuple of right-hand side
terms, so that the hurdle fit can swap the response or flatten random-effect
grouping terms without re-parsing strings. Rendering a :class:`Formula` with
``str()`` gives a patsy-compatible formula as long as it has no grouping
terms.

Examples
--------
>>> f = Formula.parse("et ~ condition + (1 | donor)")
>>> str(f.sanitized())
'et ~ condition + donor'
>>> str(f.fixed_effects().with_response("pos"))
'pos ~ condition'
"""

import re

from .errors import InvalidFormulaError

_BARE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")


def _split_top_level(text, sep):
    """Split ``text`` on ``sep`` occurring outside of parentheses."""
    parts = []
    depth = 0
    current = []
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise InvalidFormulaError(f"Unbalanced parentheses in {text!r}")
        if char == sep and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    if depth != 0:
        raise InvalidFormulaError(f"Unbalanced parentheses in {text!r}")
    parts.append("".join(current))
    return [p.strip() for p in parts]


def _wrapped_in_parens(text):
    """True if the outer parentheses of ``text`` enclose all of it."""
    if not (text.startswith("(") and text.endswith(")")):
        return False
    depth = 0
    for i, char in enumerate(text):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0 and i != len(text) - 1:
                return False
    return True


class Term:
    """A fixed-effect term, kept as its patsy source text."""

    def __init__(self, text):
        self.text = text.strip()

    @property
    def is_grouping(self):
        return False

    def flatten(self):
        return [self]

    def __eq__(self, other):
        return isinstance(other, Term) and not other.is_grouping and self.text == other.text

    def __hash__(self):
        return hash(("term", self.text))

    def __str__(self):
        return self.text

    def __repr__(self):
        return f"Term({self.text!r})"


class GroupingTerm(Term):
    """A random-effect term ``(expr | group)``."""

    def __init__(self, expr, group):
        self.expr = expr.strip()
        self.group = group.strip()
        super().__init__(f"({self.expr} | {self.group})")

    @property
    def is_grouping(self):
        return True

    @property
    def random_slopes(self):
        """Terms of ``expr`` other than the intercept markers."""
        return [t for t in _split_top_level(self.expr, "+") if t not in ("1", "0", "-1", "")]

    def flatten(self):
        """Replace the grouping bar with a plain sum of terms."""
        return [Term(t) for t in self.random_slopes] + [Term(self.group)]

    def __eq__(self, other):
        return (
            isinstance(other, GroupingTerm)
            and self.expr == other.expr
            and self.group == other.group
        )

    def __hash__(self):
        return hash(("grouping", self.expr, self.group))

    def __repr__(self):
        return f"GroupingTerm({self.expr!r}, {self.group!r})"


def _parse_term(text):
    if _wrapped_in_parens(text):
        inner = text[1:-1]
        pieces = _split_top_level(inner, "|")
        if len(pieces) == 2:
            return GroupingTerm(pieces[0], pieces[1])
    if not text:
        raise InvalidFormulaError("Empty term in formula")
    return Term(text)


class Formula:
    """A model formula ``lhs ~ term + term + ...``.

    Parameters
    ----------
    lhs : str or None
        Left hand side source text, ``None`` for one-sided formulas
    terms : sequence of Term
        Right hand side terms, in order
    """

    def __init__(self, lhs, terms):
        self.lhs = lhs.strip() if lhs is not None else None
        self.terms = tuple(terms)

    @classmethod
    def parse(cls, text):
        """Parse a formula string."""
        if not isinstance(text, str):
            raise InvalidFormulaError("'formula' must be a formula string or Formula")
        sides = _split_top_level(text, "~")
        if len(sides) != 2:
            raise InvalidFormulaError(f"Formula must contain exactly one '~': {text!r}")
        lhs, rhs = sides
        terms = []
        if rhs not in ("", "1"):
            for piece in _split_top_level(rhs, "+"):
                if piece == "1":
                    continue
                terms.append(_parse_term(piece))
        return cls(lhs or None, terms)

    @property
    def response(self):
        """Name of the response variable.

        Raises
        ------
        InvalidFormulaError
            If the formula is one-sided or the response is not a bare name.
        """
        if self.lhs is None:
            raise InvalidFormulaError("Formula must have a response on the left hand side")
        if "(" in self.lhs or ")" in self.lhs or not _BARE_NAME.match(self.lhs):
            raise InvalidFormulaError(
                "Left hand side of formula must be unadorned variable name from 'data'"
            )
        return self.lhs

    @property
    def grouping_terms(self):
        return [t for t in self.terms if t.is_grouping]

    @property
    def has_grouping(self):
        return any(t.is_grouping for t in self.terms)

    @property
    def term_names(self):
        """Source text of the fixed-effect terms."""
        return [t.text for t in self.terms if not t.is_grouping]

    def variables(self, columns):
        """Members of ``columns`` named anywhere in the formula, in column order."""
        found = set(_IDENTIFIER.findall(str(self)))
        return [c for c in columns if c in found]

    def with_response(self, name):
        return Formula(name, self.terms)

    def sanitized(self):
        """Formula with grouping terms flattened into plain terms.

        Only meant to build the model frame (response and predictor
        columns); it is not a model anyone should fit.
        """
        flat = []
        for term in self.terms:
            for t in term.flatten():
                if t not in flat:
                    flat.append(t)
        return Formula(self.lhs, flat)

    def fixed_effects(self):
        """Formula without grouping terms."""
        return Formula(self.lhs, [t for t in self.terms if not t.is_grouping])

    def drop_term(self, name):
        """Formula without the fixed-effect term ``name``."""
        if name not in self.term_names:
            raise KeyError(f"Term {name!r} not in formula {self}")
        return Formula(self.lhs, [t for t in self.terms if t.is_grouping or t.text != name])

    def rhs(self):
        return " + ".join(str(t) for t in self.terms) if self.terms else "1"

    def __eq__(self, other):
        return isinstance(other, Formula) and self.lhs == other.lhs and self.terms == other.terms

    def __hash__(self):
        return hash((self.lhs, self.terms))

    def __str__(self):
        lhs = f"{self.lhs} " if self.lhs else ""
        return f"{lhs}~ {self.rhs()}"

    def __repr__(self):
        return f"Formula({str(self)!r})"


def as_formula(formula):
    """Coerce a string or :class:`Formula` to a :class:`Formula`."""
    if isinstance(formula, Formula):
        return formula
    return Formula.parse(formula)
