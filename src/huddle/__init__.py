"""huddle: realtime fan-out and retrieval-augmented analysis for team chat."""

__version__ = "0.1.0"
