"""chunklens - chunked structural analysis for source trees."""

__version__ = "0.3.0"

from .engine import AnalysisSession, CancellationToken, analyze_project
from .models import ModuleAnalysis, ProjectAnalysis

__all__ = [
    "AnalysisSession",
    "CancellationToken",
    "ModuleAnalysis",
    "ProjectAnalysis",
    "analyze_project",
    "__version__",
]
