"""
Alternating minimization for ProtoNN.

Minimizes the mean squared label-reconstruction loss

    f(W, B, Z) = (1/n) ||Y - Z K(W, B)||_F^2 + (r/2) sum_V lambda_V ||V||_F^2
    K_ji       = exp(-gamma^2 ||b_j - W x_i||^2)

subject to ||W||_0 <= s_W, ||B||_0 <= s_B, ||Z||_0 <= s_Z, where the budgets
come from the sparsity fractions ``lambda_w``, ``lambda_b``, ``lambda_z``.

Each outer iteration updates W, then Z, then B while holding the other two
fixed. One sub-step runs ``epochs`` passes of mini-batch accelerated
proximal gradient (Beck & Teboulle momentum) whose proximal operator is
hard thresholding onto the sparsity budget. The step size of a sub-step is
found once by Armijo backtracking on a random mini-batch.

Objective and accuracies are recorded after every sub-step. They are only
observed: nothing in the loop reacts to them, and non-finite values from a
degenerate configuration flow through to the statistics untouched.

References:
    Gupta et al. (2017). ProtoNN: Compressed and Accurate kNN for
    Resource-scarce Devices. ICML.
    Beck & Teboulle (2009). A Fast Iterative Shrinkage-Thresholding Algorithm
    for Linear Inverse Problems. SIAM Journal on Imaging Sciences.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np
import scipy.sparse as sp

from .kernels import gaussian_kernel, squared_distances
from .model import project, top1_accuracy
from .sparsity import hard_threshold
from . import jsonlog

UPDATE_ORDER = ("W", "Z", "B")

ARMIJO_ETA0 = 1.0
ARMIJO_SHRINK = 0.5
ARMIJO_C = 1e-4
ARMIJO_MAX_HALVINGS = 40

# columns per chunk when evaluating the full-data objective
EVAL_CHUNK = 4096


@dataclass
class StatRecord:
    param: str          # "init", "W", "Z" or "B"
    iteration: int      # -1 for the initial record
    objective: float
    train_accuracy: float
    test_accuracy: float

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.objective, self.train_accuracy, self.test_accuracy)


class TrainingStats:
    """Ordered per-sub-step statistics: one initial record plus three per iteration."""

    def __init__(self):
        self.records: List[StatRecord] = []

    def append(self, record: StatRecord) -> None:
        self.records.append(record)

    def __len__(self):
        return len(self.records)

    def __iter__(self) -> Iterator[StatRecord]:
        return iter(self.records)

    def __getitem__(self, i) -> StatRecord:
        return self.records[i]

    def as_array(self) -> np.ndarray:
        """(len, 3) array of (objective, train accuracy, test accuracy)."""
        return np.array([r.as_tuple() for r in self.records], dtype=float).reshape(-1, 3)


def _times_transpose(A: np.ndarray, X) -> np.ndarray:
    """A @ X.T for dense A and dense or sparse X."""
    if sp.issparse(X):
        return np.asarray((X @ A.T).T)
    return A @ X.T


def _reg_value(V: np.ndarray, weight: float) -> float:
    return 0.5 * weight * float(np.sum(V * V)) if weight else 0.0


def loss_and_gradient(name: str, params: Dict[str, np.ndarray], gamma: float,
                      Xb, Yb: np.ndarray, WXb: Optional[np.ndarray] = None,
                      reg_weight: float = 0.0) -> Tuple[float, np.ndarray]:
    """
    Mini-batch loss and gradient with respect to one parameter.

    Args:
        name: "W", "B" or "Z"
        params: dense W (d, D), B (d, m), Z (l, m)
        gamma: kernel bandwidth
        Xb: batch features (D, n), dense or sparse
        Yb: batch labels (l, n)
        WXb: cached projection of Xb; ignored when ``name == "W"``
        reg_weight: ``regularizer * lambda`` for the active parameter

    Returns:
        (loss, gradient) where gradient has the shape of ``params[name]``
    """
    W, B, Z = params["W"], params["B"], params["Z"]
    if name == "W" or WXb is None:
        WXb = project(W, Xb)
    n = max(Yb.shape[1], 1)

    K = gaussian_kernel(squared_distances(B, WXb), gamma)
    R = Z @ K - Yb
    loss = float(np.sum(R * R)) / n + _reg_value(params[name], reg_weight)

    if name == "Z":
        grad = (2.0 / n) * (R @ K.T)
    else:
        # dL/dD2, with D2_ji = ||b_j - W x_i||^2
        T = (-(gamma * gamma) * (2.0 / n)) * (Z.T @ R) * K
        if name == "B":
            grad = 2.0 * (B * T.sum(axis=1)[None, :] - WXb @ T.T)
        else:
            dWX = 2.0 * (WXb * T.sum(axis=0)[None, :] - B @ T)
            grad = _times_transpose(dWX, Xb)

    if reg_weight:
        grad = grad + reg_weight * params[name]
    return loss, grad


def armijo_step_size(name, params, gamma, Xb, Yb, WXb=None, reg_weight=0.0,
                     eta0=ARMIJO_ETA0) -> float:
    """
    Backtracking line search for the step size of one sub-step.

    Halves eta until the gradient step satisfies the sufficient decrease
    condition on the given batch, or the halving budget is used up.
    """
    loss, grad = loss_and_gradient(name, params, gamma, Xb, Yb, WXb, reg_weight)
    g2 = float(np.sum(grad * grad))
    eta = eta0
    trial = dict(params)
    for _ in range(ARMIJO_MAX_HALVINGS):
        trial[name] = params[name] - eta * grad
        new_loss, _ = loss_and_gradient(name, trial, gamma, Xb, Yb, WXb, reg_weight)
        if new_loss <= loss - ARMIJO_C * eta * g2:
            break
        eta *= ARMIJO_SHRINK
    return eta


def evaluate(params: Dict[str, np.ndarray], gamma: float, X, Y: np.ndarray,
             reg: Dict[str, float] = None) -> Tuple[float, float]:
    """Objective and top-1 accuracy over all columns of X, in chunks."""
    n = Y.shape[1]
    if n == 0:
        return float("nan"), float("nan")
    W, B, Z = params["W"], params["B"], params["Z"]
    sq_err, hits = 0.0, 0.0
    for start in range(0, n, EVAL_CHUNK):
        cols = slice(start, min(start + EVAL_CHUNK, n))
        scores = Z @ gaussian_kernel(squared_distances(B, project(W, X[:, cols])), gamma)
        R = scores - Y[:, cols]
        sq_err += float(np.sum(R * R))
        hits += top1_accuracy(scores, Y[:, cols]) * scores.shape[1]
    objective = sq_err / n
    for name, weight in (reg or {}).items():
        objective += _reg_value(params[name], weight)
    return objective, hits / n


def _minimize_one(name: str, params: Dict[str, np.ndarray], gamma: float, X, Y,
                  hp, rng: np.random.Generator) -> np.ndarray:
    """Run ``hp.epochs`` accelerated proximal passes over the data for one parameter."""
    n = Y.shape[1]
    fraction = hp.lambda_for(name)
    reg_weight = hp.regularizer * fraction
    WX = None if name == "W" else project(params["W"], X)

    step_cols = rng.choice(n, size=min(hp.batch_size, n), replace=False)
    eta = armijo_step_size(name, params, gamma, X[:, step_cols], Y[:, step_cols],
                           None if WX is None else WX[:, step_cols], reg_weight)

    V = params[name]
    work = dict(params)
    momentum_point = V.copy()
    t = 1.0
    for _ in range(hp.epochs):
        order = rng.permutation(n)
        for start in range(0, n, hp.batch_size):
            cols = order[start:start + hp.batch_size]
            work[name] = momentum_point
            _, grad = loss_and_gradient(name, work, gamma, X[:, cols], Y[:, cols],
                                        None if WX is None else WX[:, cols], reg_weight)
            V_next = hard_threshold(momentum_point - eta * grad, fraction)
            t_next = (1.0 + np.sqrt(1.0 + 4.0 * t * t)) / 2.0
            momentum_point = V_next + ((t - 1.0) / t_next) * (V_next - V)
            V, t = V_next, t_next
    return V


def alternating_minimization(session) -> TrainingStats:
    """
    Train ``session.params`` in place.

    Returns:
        ``TrainingStats`` with ``iters * 3 + 1`` records
    """
    hp = session.hyperparams
    data = session.dataset
    rng = session.rng
    gamma = float(hp.gamma)
    params = {name: session.params.dense(name) for name in UPDATE_ORDER}
    reg = {name: hp.regularizer * hp.lambda_for(name) for name in UPDATE_ORDER} if hp.regularizer else {}

    stats = TrainingStats()

    def record(param, iteration):
        objective, train_acc = evaluate(params, gamma, data.Xtrain, data.Ytrain, reg)
        _, test_acc = evaluate(params, gamma, data.Xtest, data.Ytest)
        stats.append(StatRecord(param, iteration, objective, train_acc, test_acc))
        jsonlog.log("substep_stats", param=param, iter=iteration, objective=objective,
                    train_accuracy=train_acc, test_accuracy=test_acc)

    record("init", -1)
    for it in range(hp.iters):
        for name in UPDATE_ORDER:
            params[name] = _minimize_one(name, params, gamma, data.Xtrain, data.Ytrain, hp, rng)
            session.params.assign(name, params[name])
            record(name, it)
    return stats
