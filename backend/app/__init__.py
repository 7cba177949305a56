"""Video hosting backend.

Modules:
    - core: configuration, database, storage, logging, metrics, Celery
    - modules.auth: user registration and JWT authentication
    - modules.video: video catalog, uploads and range streaming
    - modules.transcoding: multi-quality FFmpeg transcoding
"""

__version__ = "0.1.0"
