"""Article restoration and publish gating for unattended content pipelines."""

__version__ = "1.0.0"
