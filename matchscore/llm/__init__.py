from matchscore.llm.interfaces import Completion, LLMProvider
from matchscore.llm.enrichment import SemanticEnrichmentClient

__all__ = ['Completion', 'LLMProvider', 'SemanticEnrichmentClient']
