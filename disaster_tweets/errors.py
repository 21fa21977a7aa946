"""
errors.py
----------
Exceptions raised by the pipeline. All of them abort the run.
"""


class PipelineError(RuntimeError):
    """Base class for fatal pipeline errors."""


class InputShapeError(PipelineError):
    """Input data is missing columns, has bad labels, or yields no features."""


class ShapeMismatchError(InputShapeError):
    """Two feature sources disagree on the number of rows."""

    def __init__(self, what, expected, got):
        self.expected = expected
        self.got = got
        super().__init__(f"{what}: expected {expected} rows, got {got}")


class ModelFitError(PipelineError):
    """A model failed to train (bad labels, bad shapes, non-convergence)."""

    def __init__(self, model_name, reason):
        self.model_name = model_name
        super().__init__(f"[{model_name}] training failed: {reason}")


class MissingModelOutputError(PipelineError):
    """The ensembler was asked to combine a model that produced no output."""

    def __init__(self, missing):
        self.missing = sorted(missing)
        super().__init__(
            f"Missing model output(s) for ensemble: {', '.join(self.missing)}")
