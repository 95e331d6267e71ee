"""
Service layer: sampling, modeling, translation, scoring
"""
