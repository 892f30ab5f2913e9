"""
AI augmenter module (OPTIONAL).

The rule engine works perfectly without this module. When an augmenter is
configured, its answer replaces the heuristic rules for a query.
"""

from optidb.augmenter.claude import ClaudeAugmenter, build_prompt, parse_recommendations
from optidb.augmenter.protocol import Augmenter

__all__ = [
    "Augmenter",
    "ClaudeAugmenter",
    "build_prompt",
    "parse_recommendations",
]
