"""
Tarot Auth - account authentication and session core.
"""

__version__ = "1.0.0"
