"""Application modules.

- transcoding: HLS encoding, duration probing and thumbnail extraction
- video: Video upload, metadata, delivery and lifecycle management
"""
