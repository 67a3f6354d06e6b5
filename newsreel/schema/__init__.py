"""ORM table exports."""

from .jobs import Article, AudioAsset, Job, Publication, Summary, VideoAsset

__all__ = ["Article", "AudioAsset", "Job", "Publication", "Summary", "VideoAsset"]
