# qrcheckin/utils/activity.py
"""
Audit trail written to the ActivityLog table.

Logging is best-effort: a failed insert is rolled back and reported, it
never breaks the request that triggered it.
"""
import json
import logging

logger = logging.getLogger(__name__)


def log_activity(activity_type, user_id=None, details=None, metadata=None):
    """Insert one ActivityLog row and commit it."""
    from qrcheckin.models import ActivityLog
    from qrcheckin.extensions import db

    try:
        db.session.add(ActivityLog(
            activity_type=activity_type,
            user_id=user_id,
            details=details,
            metadata_json=json.dumps(metadata or {}, default=str)
        ))
        db.session.commit()
        logger.debug("Activity logged: %s", activity_type)
        return True
    except Exception as e:
        db.session.rollback()
        logger.error("Activity log failed (%s): %s", activity_type, e)
        return False


def get_recent_activity(limit=20, activity_type=None):
    from qrcheckin.models import ActivityLog

    query = ActivityLog.query
    if activity_type:
        query = query.filter_by(activity_type=activity_type)
    return query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
