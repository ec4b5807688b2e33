"""payrisk: real-time fraud risk scoring for payment flows."""

__version__ = "0.1.0"
