"""Core pipeline modules: models, normalizer, cue store, segment detector.

WHY: These are the pure, storage-free pieces of the pipeline. Everything
here is synchronous and testable without I/O.

HOW: models.py defines the shared dataclasses, normalizer.py the lexical
rules, cues.py the interval matcher, detector.py the replay state machine.

RULES:
- No network or database access in this package
- Interval math in integer milliseconds
"""
