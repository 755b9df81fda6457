"""Bundle adjustment graph, optimiser and dual-number automatic differentiation."""

__version__ = "0.1.0"