"""wavebuild -- dependency-wave build orchestrator for Node/TypeScript projects."""

__version__ = "0.1.0"
