from .scorer import KellyCriterion, OpportunityScorer

__all__ = [
    'KellyCriterion',
    'OpportunityScorer',
]
