"""
FastAPI REST API Layer for tts-gateway.

    - openai_compat.py: /v1/audio/speech and /v1/models
    - routes.py: /health and /metrics
    - schemas.py: Request/response Pydantic models
    - dependencies.py: Settings, service and API-key dependencies
"""
