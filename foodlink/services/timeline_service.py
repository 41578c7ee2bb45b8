from foodlink import db
from foodlink.models.timeline import TimelineEntry


def _status_text(value):
    if value is None:
        return None
    return getattr(value, "value", value)


class TimelineRecorder:
    """Append-only audit trail for a surplus post.

    ``append`` only stages the entry on the current session so it commits (or
    rolls back) together with the transition it describes.
    """

    def append(
        self,
        post_id,
        event_type,
        actor,
        timestamp,
        actor_user_id=None,
        old_status=None,
        new_status=None,
        details=None,
        visible_to_users=True,
        temperature=None,
        packaging_condition=None,
        pickup_evidence_url=None,
    ):
        if post_id is None or not event_type or not actor or timestamp is None:
            raise ValueError("Timeline entries need a post id, event type, actor and timestamp")

        entry = TimelineEntry(
            surplus_post_id=post_id,
            event_type=event_type,
            timestamp=timestamp,
            actor=actor,
            actor_user_id=actor_user_id,
            old_status=_status_text(old_status),
            new_status=_status_text(new_status),
            details=details,
            visible_to_users=visible_to_users,
            temperature=temperature,
            packaging_condition=packaging_condition,
            pickup_evidence_url=pickup_evidence_url,
        )
        db.session.add(entry)
        return entry

    def entries_for_post(self, post_id, include_internal=False):
        query = TimelineEntry.query.filter_by(surplus_post_id=post_id)
        if not include_internal:
            query = query.filter(TimelineEntry.visible_to_users.is_(True))
        return query.order_by(TimelineEntry.timestamp.asc(), TimelineEntry.id.asc()).all()
