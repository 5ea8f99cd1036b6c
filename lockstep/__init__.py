"""lockstep: differential random testing of an implementation against a reference."""

__version__ = "0.1.0"
