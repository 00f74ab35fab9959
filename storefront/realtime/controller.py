import asyncio
import json

from quart import Blueprint, Response, current_app, jsonify
from redis.exceptions import RedisError

bp = Blueprint("realtime", __name__)


@bp.get("/api/events")
async def sse_events():
    if not current_app.stock_publisher.enabled:
        return jsonify({"error": "Realtime updates are disabled."}), 503
    connector = current_app.redis
    channel = current_app.storefront_settings.REDIS_STOCK_CHANNEL

    async def gen():
        pubsub = None
        backoff = 1.0
        # Advise client on retry
        yield "retry: 3000\n\n"
        try:
            while True:
                try:
                    if pubsub is None:
                        r = await connector.get()
                        pubsub = r.pubsub(ignore_subscribe_messages=True)
                        await pubsub.subscribe(channel)
                    message = await pubsub.get_message(timeout=5.0)
                    if message:
                        data = message.get("data")
                        try:
                            payload = json.loads(data)
                        except (TypeError, ValueError):
                            continue
                        yield "event: stock\n"
                        yield f"data: {json.dumps(payload)}\n\n"
                    else:
                        # Keep-alive for proxies
                        yield ": keep-alive\n\n"
                    backoff = 1.0
                except (RedisError, OSError):
                    yield f": redis-error, retrying in {int(backoff)}s\n\n"
                    await asyncio.sleep(backoff)
                    backoff = min(backoff * 2, 15.0)
                    if pubsub is not None:
                        await _close_pubsub(pubsub, channel)
                    pubsub = None
        finally:
            if pubsub is not None:
                await _close_pubsub(pubsub, channel)

    headers = {
        "Cache-Control": "no-cache",
        "X-Accel-Buffering": "no",
        "Connection": "keep-alive",
    }
    return Response(gen(), mimetype="text/event-stream", headers=headers)


async def _close_pubsub(pubsub, channel: str) -> None:
    try:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
    except (RedisError, OSError):
        pass
