"""
portfolio_optimizer/linalg.py
-----------------------------
Square-matrix inversion by Gauss-Jordan elimination with partial pivoting.

No domain knowledge lives here.  Near-singular pivots (``|p| < 1e-10``) are
skipped instead of raising, so the kernel always returns *something*;
:func:`gauss_jordan` reports which pivot columns were skipped so that the
caller can decide whether to trust the result.
"""

from __future__ import annotations

from typing import List, Tuple

import numpy as np

from portfolio_optimizer.config import SINGULAR_PIVOT_EPS


def gauss_jordan(matrix, eps: float = SINGULAR_PIVOT_EPS) -> Tuple[np.ndarray, List[int]]:
    """
    Invert *matrix* and report skipped pivots.

    Parameters
    ----------
    matrix : array-like
        n×n matrix.  Not modified.
    eps : float
        Pivots with absolute value below this are treated as zero.

    Returns
    -------
    (inverse, skipped)
        ``inverse`` is an n×n ``numpy`` array.  ``skipped`` lists the pivot
        columns that were near-zero; when it is non-empty the inverse is
        not reliable.

    Raises
    ------
    ValueError
        If *matrix* is not square.
    """
    a = np.array(matrix, dtype=float)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise ValueError(f"Matrix must be square n×n (got shape {a.shape}).")

    n = a.shape[0]
    augmented = np.hstack([a, np.eye(n)])
    skipped: List[int] = []

    for col in range(n):
        # Partial pivoting: largest absolute value at or below the diagonal
        pivot_row = col + int(np.argmax(np.abs(augmented[col:, col])))
        if pivot_row != col:
            augmented[[col, pivot_row]] = augmented[[pivot_row, col]]

        pivot = augmented[col, col]
        if abs(pivot) < eps:
            skipped.append(col)
            continue

        augmented[col] /= pivot

        factors = augmented[:, col].copy()
        factors[col] = 0.0
        augmented -= np.outer(factors, augmented[col])

    return augmented[:, n:], skipped


def invert_matrix(matrix) -> np.ndarray:
    """Return the inverse of a square matrix (near-singular pivots skipped)."""
    inverse, _ = gauss_jordan(matrix)
    return inverse
