"""Quality-control-and-fix loop."""

from .loop import QCOutcome, QualityControlLoop, mean_score

__all__ = ["QCOutcome", "QualityControlLoop", "mean_score"]
