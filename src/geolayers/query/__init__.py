"""Query language and display rules."""

from .display_rules import DEFAULT_DISPLAY_RULES, DisplayRule, DisplayRulesCache, apply_display_rules
from .engine import Query, QueryError, Token, TokenType, compile_query, preprocess_query_string, to_postfix, tokenize

__all__ = [
    "DEFAULT_DISPLAY_RULES",
    "DisplayRule",
    "DisplayRulesCache",
    "Query",
    "QueryError",
    "Token",
    "TokenType",
    "apply_display_rules",
    "compile_query",
    "preprocess_query_string",
    "to_postfix",
    "tokenize",
]
