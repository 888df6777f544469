"""ESG score tracker: poll an ESG score API, store the scores, report the leaders."""

__version__ = "0.1.0"
