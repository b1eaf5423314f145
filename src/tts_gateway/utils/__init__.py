"""
Utility Modules for tts-gateway.

    - text.py: Input cleaning (markdown, emoji, URLs, citations)
    - timeit.py: Timing context manager
"""
