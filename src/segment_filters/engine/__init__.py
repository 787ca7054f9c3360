"""Filter evaluation against tabular visitor data."""

from segment_filters.engine.evaluator import build_mask, evaluate_tree, preview

__all__ = ["build_mask", "evaluate_tree", "preview"]
