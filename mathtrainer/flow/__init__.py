from mathtrainer.flow.backend import ServiceBackend, TrainerBackend
from mathtrainer.flow.best_results import BestResult, BestResults
from mathtrainer.flow.cache import ProgressCache
from mathtrainer.flow.machine import FlowState, Reveal, TrainerFlow
from mathtrainer.flow.timers import Countdown, OpponentSimulator, RepeatingTimer

__all__ = [
    "BestResult",
    "BestResults",
    "Countdown",
    "FlowState",
    "OpponentSimulator",
    "ProgressCache",
    "RepeatingTimer",
    "Reveal",
    "ServiceBackend",
    "TrainerBackend",
    "TrainerFlow",
]
