import numpy as np
import scipy.sparse as sp
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.utils.validation import check_array, check_is_fitted, check_X_y

from .config import HyperParams
from .trainer import ProtoNNTrainer


class ProtoNNClassifier(BaseEstimator, ClassifierMixin):
    """
    scikit-learn wrapper around ``ProtoNNTrainer``.

    Uses the usual sklearn orientation (samples in rows) and arbitrary class
    labels; normalization is left to the surrounding pipeline.

    >>> from sklearn.pipeline import make_pipeline
    >>> from sklearn.preprocessing import MinMaxScaler
    >>> clf = make_pipeline(MinMaxScaler(), ProtoNNClassifier(projection_dim=10, n_prototypes=30))
    >>> clf.fit(X_train, y_train).score(X_test, y_test)
    """

    def __init__(self, projection_dim=10, n_prototypes=20, initialization="sample",
                 lambda_w=1.0, lambda_b=1.0, lambda_z=1.0, gamma_numerator=1.0,
                 batch_size=32, epochs=3, iters=20, seed=42):
        self.projection_dim = projection_dim
        self.n_prototypes = n_prototypes
        self.initialization = initialization
        self.lambda_w = lambda_w
        self.lambda_b = lambda_b
        self.lambda_z = lambda_z
        self.gamma_numerator = gamma_numerator
        self.batch_size = batch_size
        self.epochs = epochs
        self.iters = iters
        self.seed = seed

    def fit(self, X, y):
        X, y = check_X_y(X, y, accept_sparse="csr", dtype=float)
        self.classes_, y_idx = np.unique(y, return_inverse=True)
        n, D = X.shape
        hp = HyperParams(d=self.projection_dim, D=D, l=len(self.classes_),
                         m=min(self.n_prototypes, n), initialization=self.initialization,
                         lambda_w=self.lambda_w, lambda_b=self.lambda_b, lambda_z=self.lambda_z,
                         gamma_numerator=self.gamma_numerator, batch_size=self.batch_size,
                         epochs=self.epochs, iters=self.iters, seed=self.seed)
        trainer = ProtoNNTrainer(hp)
        if sp.issparse(X):
            X.sort_indices()
            for i in range(n):
                lo, hi = X.indptr[i], X.indptr[i + 1]
                trainer.feed_sparse(X.data[lo:hi], X.indices[lo:hi], [y_idx[i]])
        else:
            for i in range(n):
                trainer.feed_dense(X[i], [y_idx[i]])
        trainer.finalize_data()
        self.stats_ = trainer.train()
        self.model_ = trainer.model()
        self.hyperparams_ = trainer.hyperparams
        self.n_features_in_ = D
        return self

    def predict_scores(self, X):
        check_is_fitted(self, "model_")
        X = check_array(X, accept_sparse="csr", dtype=float)
        return self.model_.scores(X.T).T

    def predict(self, X):
        scores = self.predict_scores(X)
        return self.classes_[np.argmax(scores, axis=1)]
