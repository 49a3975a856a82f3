"""The ``mensura`` package reconstructs the rhythm of recognized measures:
time slots, voices, expected and actual durations, and measure numbering.

The main entry point is :class:`mensura.rhythm.RhythmInferenceEngine`.
"""

__version__ = "0.1.0"
