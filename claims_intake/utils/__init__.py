"""Utility modules for configuration, logging, errors and the AI client."""

from .json_parser import AIResponseParser, parse_ai_response

__all__ = [
    'AIResponseParser',
    'parse_ai_response'
]
