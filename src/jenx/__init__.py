"""
jenx - Run one Jenkins job across every permutation of its parameters.

Plan permutations, fan builds out with a concurrency cap, watch them land.
"""

from jenx.executor import RunExecutor
from jenx.permutation import ParameterSelection, build_permutations

__version__ = "0.1.0"
__all__ = ["ParameterSelection", "RunExecutor", "__version__", "build_permutations"]
