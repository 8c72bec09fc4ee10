from .evaluator import RiskEvaluator, evaluate_risk

__all__ = ["RiskEvaluator", "evaluate_risk"]
