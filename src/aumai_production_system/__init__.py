"""AumAI production system -- propositional forward and backward chaining."""

__version__ = "0.1.0"
