"""
Transcription module - Audio to text using Deepgram, stored per user.
"""

from voice2text.transcription.router import router as transcription_router

__all__ = ["transcription_router"]
