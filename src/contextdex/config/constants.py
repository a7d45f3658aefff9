"""Configuration constants.

This module contains truly constant values that should NOT be user-configurable.
For configurable values, see models.py.
"""

# =============================================================================
# Layout
# =============================================================================

STATE_DIR = ".contextdex"
"""Per-project state directory holding the index and config."""

CONFIG_FILE = "config.yaml"
DB_FILE = "index.db"
LOG_FILE = "server.log"

# =============================================================================
# Query Maximums
# =============================================================================

SEARCH_MAX_K = 100
"""Maximum results for one search or pack request."""

PACK_NEIGHBOR_LIMIT = 5
"""1-hop neighbours added per packed entity."""

# =============================================================================
# Template Indexing
# =============================================================================

TEMPLATE_MARKER = "template"
"""Token every template's lexical text carries, and the template entity name."""

TEMPLATE_RAW_TEXT_CHARS = 500
"""Prefix of a template file kept for context packing."""

TEMPLATE_CALL_STOPLIST = frozenset({"if", "for", "case", "cond", "with", "unless"})
"""Control keywords that look like bare calls in templates."""

# =============================================================================
# Fallback Scoring
# =============================================================================

FALLBACK_BASE_SCORE = 100
FALLBACK_DEFINITION_BONUS = 50
FALLBACK_PRIMARY_DIR_BONUS = 20
FALLBACK_TEST_DIR_PENALTY = 10
FALLBACK_LONG_LINE_PENALTY = 20

DEFINITION_KEYWORDS = ("def", "defp", "defmacro", "defmacrop", "defmodule", "defguard")
"""Keywords that open a definition line in fallback matches."""
