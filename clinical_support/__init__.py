"""
Clinical Decision Support & Alerting Engine

NEWS2 early-warning scoring, drug interaction / allergy checking and the
clinical alert lifecycle for the hospital operations backend.
"""
__version__ = "1.0.0"
