"""
Voice2Text backend - audio upload, Deepgram transcription, per-user history.
"""

__version__ = "0.1.0"
