"""NoiseMeter - ambient noise level monitoring with alerts and session history."""

__version__ = "0.1.0"
