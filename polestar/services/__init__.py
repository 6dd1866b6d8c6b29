from .polar import (
    AxisEstimate,
    CorrectionTarget,
    PolarAlignService,
    PolarAlignState,
    RefreshResult,
    Sample,
)

__all__ = [
    "AxisEstimate",
    "CorrectionTarget",
    "PolarAlignService",
    "PolarAlignState",
    "RefreshResult",
    "Sample",
]
