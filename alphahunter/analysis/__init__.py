from .normalizer import Normalizer, NormalizedInput, validate_question
from .sentiment import SentimentAnalyzer, SentimentResult
from .factors import (
    FactorDecomposer,
    HeuristicFactorDecomposer,
    ClaudeFactorDecomposer,
    bound_factors,
)
from .bayesian import BayesianEstimator, Posterior, logit, sigmoid
from .scenarios import build_scenarios
from .pipeline import PredictionPipeline, PIPELINE_STAGES

__all__ = [
    'Normalizer',
    'NormalizedInput',
    'validate_question',
    'SentimentAnalyzer',
    'SentimentResult',
    'FactorDecomposer',
    'HeuristicFactorDecomposer',
    'ClaudeFactorDecomposer',
    'bound_factors',
    'BayesianEstimator',
    'Posterior',
    'logit',
    'sigmoid',
    'build_scenarios',
    'PredictionPipeline',
    'PIPELINE_STAGES',
]
