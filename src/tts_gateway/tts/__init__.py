"""
Speech backend layer.

    - credentials.py: Backend token cache with stale fallback
    - chunker.py: Text segmentation into bounded chunks
    - client.py: SSML building and single synthesis calls
    - pipeline.py: Ordered batch pipeline and audio sinks
"""
