"""
UF2 Tools Command-Line Interface
================================

This package provides the command-line tool for UF2 tools:

- **uf2tool**: UF2 image generator and block combiner

The tool is implemented as a Click-based CLI application with
comprehensive help and error reporting.
"""

__all__ = ["uf2tool"]
