"""Closed-loop control simulation: signal generator, PID controller and ARX plant, run locally or over TCP."""

__version__ = "0.1.0"