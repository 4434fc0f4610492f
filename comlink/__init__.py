"""
Comlink - natural-language tool resolution.

Resolve user requests to installable tools discovered on a social feed, with
per-user installed tool sets.
"""

__version__ = "0.1.0"
