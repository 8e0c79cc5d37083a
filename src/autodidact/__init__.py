"""Autonomous knowledge-acquisition agent with a guarded self-deployment pipeline."""

__version__ = "0.1.0"
