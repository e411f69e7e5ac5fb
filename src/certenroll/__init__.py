"""certenroll: X.509 certificate enrollment and renewal against a remote CA."""

__version__ = "1.0.0"
