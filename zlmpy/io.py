"""
Data sources for zlmpy.

The batch runner works on long-format tables with one row per
(primerid, wellKey) pair. These helpers build an AnnData from a wide
genes x cells matrix and melt an AnnData back into that long format.
"""

import warnings
from typing import Optional, Union

import anndata
import numpy as np
import pandas as pd


def from_matrix(
    exprs: Union[np.ndarray, pd.DataFrame],
    c_data: Optional[pd.DataFrame] = None,
    f_data: Optional[pd.DataFrame] = None,
    check_sanity: bool = True,
) -> anndata.AnnData:
    """
    Create AnnData from a genes x cells expression matrix.

    Parameters
    ----------
    exprs : np.ndarray or pd.DataFrame
        Expression matrix (genes x cells); a DataFrame supplies gene and
        cell names through its index and columns
    c_data : pd.DataFrame, optional
        Cell metadata, one row per cell
    f_data : pd.DataFrame, optional
        Gene metadata, one row per gene
    check_sanity : bool
        Warn if the data do not look log-transformed

    Returns
    -------
    anndata.AnnData
        AnnData with cells as observations and genes as variables
    """
    if isinstance(exprs, pd.DataFrame):
        genes = [str(g) for g in exprs.index]
        cells = [str(c) for c in exprs.columns]
        X = exprs.to_numpy(dtype=float)
    else:
        X = np.asarray(exprs, dtype=float)
        genes = [f"gene_{i}" for i in range(X.shape[0])]
        cells = [f"cell_{i}" for i in range(X.shape[1])]

    if f_data is None:
        f_data = pd.DataFrame(index=genes)
    elif len(f_data) != X.shape[0]:
        raise ValueError(f"f_data has {len(f_data)} rows but exprs has {X.shape[0]} genes")
    else:
        f_data = f_data.copy()
        f_data.index = [str(i) for i in f_data.index]

    if c_data is None:
        c_data = pd.DataFrame(index=cells)
    elif len(c_data) != X.shape[1]:
        raise ValueError(f"c_data has {len(c_data)} rows but exprs has {X.shape[1]} cells")
    else:
        c_data = c_data.copy()
        c_data.index = [str(i) for i in c_data.index]

    if check_sanity:
        _sanity_check(X)

    return anndata.AnnData(X=X.T, obs=c_data, var=f_data)


def _sanity_check(X: np.ndarray) -> None:
    """Warn if the data do not look log-transformed."""
    X_nonzero = X[X != 0]

    if len(X_nonzero) == 0:
        warnings.warn("All expression values are zero")
        return

    max_val = np.max(X_nonzero)
    if max_val > 100:
        warnings.warn(
            "Maximum expression value > 100. Data may not be log-transformed. "
            "Set check_sanity=False to override."
        )


def melt(
    adata: anndata.AnnData,
    layer: Optional[str] = None,
    value_name: str = "value",
) -> pd.DataFrame:
    """
    Melt AnnData to a long format dataframe.

    Parameters
    ----------
    adata : anndata.AnnData
        AnnData object (cells x genes)
    layer : str, optional
        Layer to use (default: X)
    value_name : str
        Name for the value column

    Returns
    -------
    pd.DataFrame
        Columns ``primerid``, ``wellKey``, ``value_name``, then cell and
        gene metadata, sorted by primerid
    """
    if layer is None:
        X = adata.X
    elif layer in adata.layers:
        X = adata.layers[layer]
    else:
        raise ValueError(f"Layer '{layer}' not found")

    if hasattr(X, "toarray"):
        X = X.toarray()
    X = np.asarray(X)

    genes = adata.var_names.tolist()
    cells = adata.obs_names.tolist()

    melted = pd.DataFrame(
        {
            "primerid": np.repeat(genes, len(cells)),
            "wellKey": np.tile(cells, len(genes)),
            value_name: X.T.ravel(),
        }
    )

    obs_df = adata.obs.drop(columns=["wellKey"], errors="ignore")
    obs_df.index.name = "wellKey"
    var_df = adata.var.drop(columns=["primerid"], errors="ignore")
    var_df.index.name = "primerid"

    melted = melted.merge(obs_df.reset_index(), on="wellKey", how="left")
    melted = melted.merge(var_df.reset_index(), on="primerid", how="left")

    return melted
