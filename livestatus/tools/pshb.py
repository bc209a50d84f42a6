"""Operator CLI for the PubSubHubbub subscription and YouTube lookups.

Examples::

    python -m livestatus.tools.pshb signature notification.xml
    python -m livestatus.tools.pshb subscribe https://example.com/api/uptime/webhook subscribe
    python -m livestatus.tools.pshb mock-hub http://localhost:8000/api/uptime/webhook POST --video dQw4w9WgXcQ
    python -m livestatus.tools.pshb video dQw4w9WgXcQ

Secrets come from the same environment variables the service reads.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import httpx

from livestatus.config import LiveStatusSettings
from livestatus.errors import UpstreamUnavailable
from livestatus.providers.hub import HubClient, build_subscription_form
from livestatus.providers.youtube import YouTubeClient
from livestatus.security import signature_header

logger = logging.getLogger("livestatus.tools.pshb")

SAMPLE_NOTIFICATION = """<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015" xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <yt:videoId>{video_id}</yt:videoId>
    <yt:channelId>{channel_id}</yt:channelId>
  </entry>
</feed>
"""


class CommandError(Exception):
    pass


def _sync_client_factory(**kwargs: Any) -> httpx.Client:
    return httpx.Client(**kwargs)


def _emit(label: str, payload: Any, *, as_json: bool) -> None:
    if as_json and isinstance(payload, str):
        print(payload)
    elif as_json:
        print(json.dumps(payload, indent=2))
    elif isinstance(payload, (dict, list)):
        print(f"{label}: {json.dumps(payload, indent=2)}")
    else:
        print(f"{label}: {payload}")


def _require(value: str, name: str) -> str:
    if not value:
        raise CommandError(f"{name} is not set")
    return value


def cmd_signature(args: argparse.Namespace, settings: LiveStatusSettings) -> Any:
    secret = _require(settings.webhook_secret, "WEBHOOK_SECRET")
    path = Path(args.file)
    logger.info("reading payload from %s", path)
    try:
        payload = path.read_bytes()
    except OSError as exc:
        raise CommandError(f"cannot read {path}: {exc}") from exc
    return signature_header(secret, payload)


def cmd_subscribe(args: argparse.Namespace, settings: LiveStatusSettings) -> Any:
    form = build_subscription_form(
        mode=args.mode,
        topic=settings.topic_url,
        callback=args.callback,
        verify_token=_require(settings.verify_token, "VERIFY_TOKEN"),
        secret=_require(settings.webhook_secret, "WEBHOOK_SECRET"),
        lease_seconds=settings.lease_seconds,
    )
    hub = HubClient(hub_url=settings.hub_url, timeout=settings.http_timeout_seconds)
    logger.info("sending %s request to %s", args.mode, settings.hub_url)
    status_code = asyncio.run(hub.request(form))
    return {"success": f"hub {args.mode} request accepted", "status": status_code}


def _mock_payload(args: argparse.Namespace, settings: LiveStatusSettings) -> bytes:
    if args.payload:
        return Path(args.payload).read_bytes()
    return SAMPLE_NOTIFICATION.format(
        video_id=args.video, channel_id=settings.channel_id
    ).encode("utf-8")


def cmd_mock_hub(args: argparse.Namespace, settings: LiveStatusSettings) -> Any:
    method = args.method
    with _sync_client_factory(timeout=settings.http_timeout_seconds) as client:
        if method == "GET":
            params = {
                "hub.mode": "subscribe",
                "hub.topic": settings.topic_url,
                "hub.challenge": args.challenge,
                "hub.verify_token": _require(settings.verify_token, "VERIFY_TOKEN"),
                "hub.lease_seconds": str(settings.lease_seconds),
            }
            response = client.get(args.url, params=params)
        else:
            secret = _require(settings.webhook_secret, "WEBHOOK_SECRET")
            body = _mock_payload(args, settings)
            response = client.post(
                args.url,
                content=body,
                headers={
                    "Content-Type": "application/atom+xml",
                    "X-Hub-Signature-256": signature_header(secret, body),
                    "X-Webhook-Token": secret,
                },
            )
    if not response.is_success:
        raise CommandError(f"mock {method} failed: {response.status_code}")
    return {"status": response.status_code, "body": response.text}


def cmd_video(args: argparse.Namespace, settings: LiveStatusSettings) -> Any:
    client = YouTubeClient(
        api_key=_require(settings.youtube_api_key, "YT_API_KEY"),
        timeout=settings.http_timeout_seconds,
    )
    return asyncio.run(client.video(args.video_id))


def cmd_channel(args: argparse.Namespace, settings: LiveStatusSettings) -> Any:
    client = YouTubeClient(
        api_key=_require(settings.youtube_api_key, "YT_API_KEY"),
        timeout=settings.http_timeout_seconds,
    )
    return asyncio.run(client.channel(args.channel_id))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="livestatus-pshb", description=__doc__.splitlines()[0])
    parser.add_argument("--json", action="store_true", help="force JSON output")
    sub = parser.add_subparsers(dest="command", required=True)

    sig = sub.add_parser("signature", help="compute X-Hub-Signature-256 for a payload file")
    sig.add_argument("file")
    sig.set_defaults(func=cmd_signature, label="Computed signature")

    subscribe = sub.add_parser("subscribe", help="subscribe or unsubscribe at the hub")
    subscribe.add_argument("callback")
    subscribe.add_argument("mode", choices=["subscribe", "unsubscribe"])
    subscribe.set_defaults(func=cmd_subscribe, label="Hub response")

    mock = sub.add_parser("mock-hub", help="simulate the hub against a webhook")
    mock.add_argument("url")
    mock.add_argument("method", type=str.upper, choices=["GET", "POST"])
    mock.add_argument("--video", default="dQw4w9WgXcQ")
    mock.add_argument("--payload", help="send this file instead of the sample feed")
    mock.add_argument("--challenge", default="test-challenge")
    mock.set_defaults(func=cmd_mock_hub, label="Webhook response")

    video = sub.add_parser("video", help="dump YouTube metadata for a video")
    video.add_argument("video_id")
    video.set_defaults(func=cmd_video, label="YouTube API response")

    channel = sub.add_parser("channel", help="dump YouTube metadata for a channel")
    channel.add_argument("channel_id")
    channel.set_defaults(func=cmd_channel, label="YouTube API response")
    return parser


def main(
    argv: Optional[Sequence[str]] = None, settings: Optional[LiveStatusSettings] = None
) -> int:
    logging.basicConfig(level=logging.INFO, stream=sys.stderr, format="%(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)
    as_json = args.json or not sys.stdout.isatty()
    settings = settings or LiveStatusSettings.from_env()

    try:
        result = args.func(args, settings)
    except (CommandError, UpstreamUnavailable, httpx.HTTPError, OSError) as exc:
        error: Dict[str, str] = {"error": f"{args.command} failed", "message": str(exc)}
        print(json.dumps(error, indent=2) if as_json else f"{error['error']}: {exc}", file=sys.stderr)
        return 1

    _emit(args.label, result, as_json=as_json)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
