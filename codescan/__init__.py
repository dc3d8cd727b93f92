"""Repository scan and CI/CD webhook analysis pipeline."""

__version__ = "1.0.0"
