"""
Improv slide deck generator: LLM-authored outlines, generated images,
and a browsable archive of past generations.
"""

__version__ = "0.1.0"
