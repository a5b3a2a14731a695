"""
Project type detection.
"""
from autodeploy.services.detection.classifier import TypeClassifier

__all__ = ["TypeClassifier"]
