"""
labelcheck: ingredient-label parsing and allergen risk evaluation.
"""
__version__ = "0.1.0"
