"""
Adventure-Engine - session orchestration for AI game master text adventures.
"""

__version__ = "0.1.0"
