"""Configuration, logging setup, prover errors and a fallback proving executor."""

__version__ = "0.1.0"