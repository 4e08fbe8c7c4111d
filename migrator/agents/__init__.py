"""
AI agents

- base_agent.py: BaseAIAgent (prompts, AI calls, best-effort file helpers)
- analysis_agent.py: AnalysisAgent
- fix_agent.py: FixAgent
- validation_agent.py: ValidationAgent
"""

from .base_agent import BaseAIAgent
from .analysis_agent import AnalysisAgent
from .fix_agent import FixAgent
from .validation_agent import ValidationAgent

__all__ = ["BaseAIAgent", "AnalysisAgent", "FixAgent", "ValidationAgent"]
