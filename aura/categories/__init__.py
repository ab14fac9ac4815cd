"""Expense category vocabulary."""

from aura.categories.vocabulary import CategoryVocabulary, category_key

__all__ = ["CategoryVocabulary", "category_key"]
