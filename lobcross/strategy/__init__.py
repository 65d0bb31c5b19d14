"""Signal generation public exports."""

from .crossover import (
    Action,
    Bias,
    CrossoverStateMachine,
    Decision,
    generate,
    generate_from_config,
    moving_averages,
)

__all__ = [
    "Action",
    "Bias",
    "CrossoverStateMachine",
    "Decision",
    "generate",
    "generate_from_config",
    "moving_averages",
]
