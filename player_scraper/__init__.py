"""
EliteProspects Swedish player extractor with resumable progress and batch upload.
"""

__version__ = "1.0.0"
