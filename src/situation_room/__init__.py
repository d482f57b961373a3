"""
Situation Room

Chat orchestration service that ties chat rooms to business objects.
"""
__version__ = "0.1.0"
