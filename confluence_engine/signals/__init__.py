"""Directional-opinion providers, parsing and validation."""

from .http_provider import HttpOpinionProvider
from .parsing import parse_proposal
from .provider import OpinionProvider
from .stub_provider import StubOpinionProvider
from .validator import OpinionValidator

__all__ = [
    "HttpOpinionProvider",
    "OpinionProvider",
    "OpinionValidator",
    "StubOpinionProvider",
    "parse_proposal",
]
