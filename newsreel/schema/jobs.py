from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from newsreel.core.database import Base


class Job(Base):
  __tablename__ = "jobs"
  __table_args__ = (Index("ix_jobs_topic_created_at", "topic", "created_at"), Index("ix_jobs_status_updated_at", "status", "updated_at"))

  job_id: Mapped[str] = mapped_column(String, primary_key=True)
  topic: Mapped[str] = mapped_column(String(100), nullable=False)
  language: Mapped[str] = mapped_column(String(8), nullable=False)
  target_length: Mapped[int] = mapped_column(Integer, nullable=False)
  auto_publish: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  status: Mapped[str] = mapped_column(String, nullable=False, index=True)
  progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  error: Mapped[str | None] = mapped_column(Text, nullable=True)
  source_hash: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Article(Base):
  __tablename__ = "articles"

  article_id: Mapped[str] = mapped_column(String, primary_key=True)
  job_id: Mapped[str] = mapped_column(ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False, unique=True)
  source: Mapped[str] = mapped_column(String, nullable=False)
  url: Mapped[str] = mapped_column(Text, nullable=False)
  title: Mapped[str] = mapped_column(Text, nullable=False)
  content: Mapped[str] = mapped_column(Text, nullable=False)
  content_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
  media_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Summary(Base):
  __tablename__ = "summaries"

  summary_id: Mapped[str] = mapped_column(String, primary_key=True)
  job_id: Mapped[str] = mapped_column(ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False, unique=True)
  text: Mapped[str] = mapped_column(Text, nullable=False)
  word_count: Mapped[int] = mapped_column(Integer, nullable=False)
  language: Mapped[str] = mapped_column(String(8), nullable=False)
  quality_flags: Mapped[dict] = mapped_column(JSONB, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AudioAsset(Base):
  __tablename__ = "audio_assets"

  audio_id: Mapped[str] = mapped_column(String, primary_key=True)
  job_id: Mapped[str] = mapped_column(ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False, unique=True)
  url: Mapped[str] = mapped_column(Text, nullable=False)
  duration: Mapped[int] = mapped_column(Integer, nullable=False)
  sample_rate: Mapped[int] = mapped_column(Integer, nullable=False)
  format: Mapped[str] = mapped_column(String(16), nullable=False)
  size: Mapped[int | None] = mapped_column(Integer, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class VideoAsset(Base):
  __tablename__ = "video_assets"

  video_id: Mapped[str] = mapped_column(String, primary_key=True)
  job_id: Mapped[str] = mapped_column(ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False, unique=True)
  video_url: Mapped[str] = mapped_column(Text, nullable=False)
  subtitle_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
  width: Mapped[int] = mapped_column(Integer, nullable=False)
  height: Mapped[int] = mapped_column(Integer, nullable=False)
  duration: Mapped[int] = mapped_column(Integer, nullable=False)
  size: Mapped[int | None] = mapped_column(Integer, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Publication(Base):
  __tablename__ = "publications"

  publication_id: Mapped[str] = mapped_column(String, primary_key=True)
  job_id: Mapped[str] = mapped_column(ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False, index=True)
  platform: Mapped[str] = mapped_column(String(32), nullable=False)
  platform_video_id: Mapped[str] = mapped_column(String, nullable=False, default="")
  status: Mapped[str] = mapped_column(String(16), nullable=False)
  published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
