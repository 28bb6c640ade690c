"""chatledger: conversation feed to timeline reconciliation."""

__version__ = "0.1.0"
