"""
expctl - Experiment controller core.

Turn experiments into trials, and tear them down without orphans.
"""

from expctl.factory import TrialFactory
from expctl.finalizers import FinalizerLifecycleManager, ReconcileResult
from expctl.models import Experiment, ParameterAssignment, Trial

__version__ = "0.1.0"
__all__ = [
    "Experiment",
    "FinalizerLifecycleManager",
    "ParameterAssignment",
    "ReconcileResult",
    "Trial",
    "TrialFactory",
    "__version__",
]
