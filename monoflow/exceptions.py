"""
Exception types raised by MonoFlow
"""


class MonoFlowError(Exception):
    """Base class for all MonoFlow errors"""


class MalformedInputError(MonoFlowError):
    """Count table could not be parsed or failed validation"""


class ConditionClassificationError(MonoFlowError):
    """Sample identifier matched none of the configured condition markers"""

    def __init__(self, sample_id: str, labels):
        self.sample_id = sample_id
        self.labels = list(labels)
        super().__init__(
            f"Sample '{sample_id}' does not match any condition marker "
            f"({', '.join(self.labels)}) and no fallback condition is configured"
        )


class ModelConvergenceError(MonoFlowError):
    """Negative binomial model could not be fitted"""


class AnnotationError(MonoFlowError):
    """Gene symbol lookup source is unavailable or unreadable"""
