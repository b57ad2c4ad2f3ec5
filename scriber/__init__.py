"""
Scriber: meeting transcription and minutes API.
"""

__version__ = "1.0.0"
