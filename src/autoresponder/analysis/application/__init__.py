"""
Analysis Application Layer
==========================

Contains:
- AnalysisEngine: concurrent sentiment/urgency/intent/context analysis
"""

from autoresponder.analysis.application.services import AnalysisEngine

__all__ = ["AnalysisEngine"]
