"""
Durable storage for projects, videos, segments, articles and jobs.
"""

from reeldocs.db.models import (
    Article,
    Base,
    Chapter,
    ProcessingJob,
    Project,
    Video,
    VideoSegment,
)
from reeldocs.db.session import (
    create_engine,
    create_session_factory,
    init_db,
    session_scope,
)

__all__ = [
    "Article",
    "Base",
    "Chapter",
    "ProcessingJob",
    "Project",
    "Video",
    "VideoSegment",
    "create_engine",
    "create_session_factory",
    "init_db",
    "session_scope",
]
