import numpy as np
import pandas as pd
import pytest

import zlmpy


# ------------------------------------------------------------------ #
# Two genes, ten samples each, binary covariate "group"
#
# geneA: zeros and positives in both groups
# geneB: all zero when group == 1, so the positive part has no
#        variation in "group"
# ------------------------------------------------------------------ #

GROUP = [0, 0, 0, 0, 0, 1, 1, 1, 1, 1]
GENE_A = [0.0, 2.1, 3.4, 0.0, 2.8, 4.5, 0.0, 5.1, 6.0, 5.5]
GENE_B = [0.0, 1.9, 2.2, 0.0, 2.5, 0.0, 0.0, 0.0, 0.0, 0.0]


def gene_frame(values, primerid):
    return pd.DataFrame(
        {
            "primerid": primerid,
            "wellKey": [f"cell_{i}" for i in range(len(values))],
            "value": values,
            "group": GROUP,
        }
    )


@pytest.fixture()
def gene_a():
    return gene_frame(GENE_A, "geneA")


@pytest.fixture()
def gene_b():
    return gene_frame(GENE_B, "geneB")


@pytest.fixture()
def long_table(gene_a, gene_b):
    return pd.concat([gene_b, gene_a], ignore_index=True)


@pytest.fixture()
def model_a(gene_a):
    return zlmpy.zlm("value ~ group", gene_a)


@pytest.fixture()
def model_b(gene_b):
    return zlmpy.zlm("value ~ group", gene_b)


@pytest.fixture()
def rng():
    return np.random.default_rng(42)


@pytest.fixture()
def assay_table(rng):
    """Long table with 6 genes, 40 cells and a two-level condition."""
    n_cells = 40
    condition = np.array(["A", "B"] * (n_cells // 2))
    frames = []
    for g in range(6):
        mu = 2.0 + 0.8 * (condition == "B") * (g % 2)
        values = rng.normal(mu, 0.5)
        values[rng.random(n_cells) < 0.3] = 0.0
        frames.append(
            pd.DataFrame(
                {
                    "primerid": f"gene_{g}",
                    "wellKey": [f"cell_{i}" for i in range(n_cells)],
                    "value": np.clip(values, 0, None),
                    "condition": condition,
                }
            )
        )
    return pd.concat(frames, ignore_index=True)


@pytest.fixture()
def donor_table(rng):
    """Gaussian data with a donor random intercept."""
    n_donors, per_donor = 4, 10
    donor = np.repeat([f"d{i}" for i in range(n_donors)], per_donor)
    x = rng.normal(size=n_donors * per_donor)
    donor_effect = np.repeat(rng.normal(scale=1.0, size=n_donors), per_donor)
    y = 1.0 + 0.5 * x + donor_effect + rng.normal(scale=0.5, size=n_donors * per_donor)
    return pd.DataFrame({"y": y, "x": x, "donor": donor})


@pytest.fixture()
def zero_inflated_donor_table(donor_table, rng):
    """donor_table with positive y and zeros more likely at low x."""
    x = donor_table["x"].to_numpy()
    zero = rng.random(len(x)) < 1.0 / (1.0 + np.exp(2.0 * x))
    y = np.where(zero, 0.0, np.exp(0.5 * donor_table["y"].to_numpy()))
    return donor_table.assign(y=y)
