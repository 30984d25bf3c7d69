"""
Traceability API: recipes, production lots and allergen labels.
"""
