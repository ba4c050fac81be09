"""Style-conformance checker for C/C++ sources.

The pipeline reads a file, lexes it, derives a shallow brace structure, runs
independent style rules over it and reports (or fixes) what they find.
"""

__version__ = "0.1.0"
