class DiscrimError(Exception):
    """Base exception for sparse_discrim."""
    pass

class InputError(DiscrimError, ValueError):
    """Raised when training data, priors, new data or options are malformed."""
    pass

class NumericalError(DiscrimError, ArithmeticError):
    """Raised when a covariance is degenerate and the strategy needs a true inverse."""
    pass
