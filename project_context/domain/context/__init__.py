# This module handles context assembly

# +---------------------+      +---------------------+
# |     File Store      |      |   Access Tracker    |
# |---------------------|      |---------------------|
# | path -> content     |      | latest access/path  |
# | debounced sync      |      | priority + recency  |
# +---------------------+      +---------------------+
#            \                        /
#             \                      /
#              v                    v
# +-------------------------------------------+
# |             Context Assembler              |
# |-------------------------------------------|
# | instruction block                          |
# | working set of files (truncated per file)  |
# | history (collapsed when over budget)       |
# | new user message                           |
# +-------------------------------------------+
#                      |
#                      v
#          [language-model client]

from .token_estimator import estimate_tokens, TokenEstimator, CHARS_PER_TOKEN
from .hot_paths import ALWAYS_HOT_PATHS, is_always_hot, get_existing_hot_paths
from .access_tracker import AccessTracker, PriorityScorer, default_priority
from .history_collapser import collapse_messages, needs_collapsing, get_message_token_count
from .context_assembler import ContextAssembler, InstructionProvider, TRUNCATION_MARKER

__all__ = [
    "estimate_tokens",
    "TokenEstimator",
    "CHARS_PER_TOKEN",
    "ALWAYS_HOT_PATHS",
    "is_always_hot",
    "get_existing_hot_paths",
    "AccessTracker",
    "PriorityScorer",
    "default_priority",
    "collapse_messages",
    "needs_collapsing",
    "get_message_token_count",
    "ContextAssembler",
    "InstructionProvider",
    "TRUNCATION_MARKER",
]
