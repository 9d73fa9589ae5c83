"""Report generation from captured items."""

from skycast.analysis.base import AnalysisError, BaseAnalyzer
from skycast.analysis.openai_analyzer import OpenAIAnalyzer
from skycast.analysis.prompts import build_analysis_prompt, build_fallback_text, local_greeting

__all__ = [
    "AnalysisError",
    "BaseAnalyzer",
    "OpenAIAnalyzer",
    "build_analysis_prompt",
    "build_fallback_text",
    "local_greeting",
]
