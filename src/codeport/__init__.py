"""Codeport - translate source trees between programming languages using LLMs.

This package walks a source file or directory, sends each translatable file to a
completion service and mirrors the translated files into a destination tree.
"""

__version__ = "0.1.0"
__license__ = "MIT"
