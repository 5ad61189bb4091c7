"""Synaptic: turn SVCMS commit history into project memory documents."""

__version__ = "0.1.0"
