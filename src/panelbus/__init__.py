"""panelbus — session event aggregator for a desktop status panel."""

__version__ = "0.1.0"
