"""Transcoding module.

Fans one FFmpeg task out per quality profile for each upload, fans the
outcomes back in and records the video's terminal status once.
"""
