"""Confluence Engine - signal confidence scoring and filtering pipeline."""

__version__ = "0.1.0"
