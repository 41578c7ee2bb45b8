from foodlink import socketio
from foodlink.utils.clock import utc_now


def publish_platform_update(scope: str, action: str, actor_role: str = "system", **payload):
    socketio.emit(
        "platform_update",
        {
            "scope": scope,
            "action": action,
            "actor_role": actor_role,
            "timestamp": utc_now().isoformat(),
            **payload,
        },
    )


def publish_claim_event(event_type: str, post_id: int, claim_id: int = None, actor_role: str = "system"):
    publish_platform_update(
        scope="claim",
        action=event_type.lower(),
        actor_role=actor_role,
        post_id=post_id,
        claim_id=claim_id,
    )
