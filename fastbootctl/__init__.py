"""Android fastboot over raw USB, plus factory-image flashing."""

__version__ = "0.1.0"
