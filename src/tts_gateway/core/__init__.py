"""
Core Infrastructure for tts-gateway.

    - config.py: Configuration loading and validation
    - errors.py: Error taxonomy and OpenAI error envelope
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus metrics collection
"""
