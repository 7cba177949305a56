"""Application modules.

- auth: registration, login, JWT bearer tokens
- video: catalog, upload intake, range streaming
- transcoding: quality profiles, FFmpeg engine, orchestration and dispatch
"""
