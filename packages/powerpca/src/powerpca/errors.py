"""Caller-visible precondition failures for the decomposer."""


class InputShapeError(ValueError):
    """Input matrix does not satisfy the decomposer's shape preconditions."""


class NonSquareInputError(InputShapeError):
    """decompose() received a matrix with rows != columns."""

    def __init__(self, shape):
        self.shape = tuple(shape)
        super().__init__(f"Expected a square matrix, got shape {self.shape}")


class AsymmetricInputError(InputShapeError):
    """decompose() received a matrix that is not symmetric within tolerance."""

    def __init__(self, max_deviation: float):
        self.max_deviation = float(max_deviation)
        super().__init__(
            f"Expected a symmetric matrix, max |M - M.T| = {self.max_deviation:.3e}"
        )
