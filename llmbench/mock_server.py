#!/usr/bin/env python3
"""OpenAI-compatible mock endpoint with configurable latency and failure rate."""

import argparse
import asyncio
import json
import random
import threading
import time
from hashlib import sha256
from typing import Dict, List, Optional

from aiohttp import web

from .models import count_tokens


def build_reply(messages: List[Dict[str, str]]) -> str:
    parts = []
    for message in messages:
        if isinstance(message, dict):
            content = message.get("content")
            if isinstance(content, str):
                parts.append(content)
    joined = "\n".join(parts)
    digest = sha256(joined.encode("utf-8")).hexdigest()[:16]
    return f"[mock][hash:{digest}] This is a mock completion."


async def handle_chat_completion(request: web.Request) -> web.Response:
    settings = request.app["settings"]
    try:
        payload = await request.json()
    except json.JSONDecodeError:
        return web.json_response({"error": "invalid_json"}, status=400)
    if not isinstance(payload, dict):
        return web.json_response({"error": "invalid_json"}, status=400)

    messages = payload.get("messages", [])
    if not isinstance(messages, list):
        return web.json_response({"error": "messages_must_be_list"}, status=400)

    rng: random.Random = request.app["random"]
    delay_ms = rng.randint(settings["min_latency_ms"], settings["max_latency_ms"])
    if delay_ms > 0:
        await asyncio.sleep(delay_ms / 1000)

    if rng.random() < settings["error_rate"]:
        return web.json_response({"error": "simulated_failure"}, status=500)

    reply = build_reply(messages)
    prompt_tokens = sum(
        count_tokens(m.get("content")) for m in messages
        if isinstance(m, dict) and isinstance(m.get("content"), str)
    )
    completion_tokens = count_tokens(reply)
    created = int(time.time())

    body = {
        "id": f"mock-{created}",
        "object": "chat.completion",
        "created": created,
        "model": payload.get("model", "mock-model"),
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": reply},
                "finish_reason": "stop"
            }
        ],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens
        }
    }
    return web.json_response(body)


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


async def create_app(min_latency_ms: int = 0, max_latency_ms: int = 0, error_rate: float = 0.0,
                     seed: Optional[int] = None) -> web.Application:
    app = web.Application()
    app["settings"] = {
        "min_latency_ms": min_latency_ms,
        "max_latency_ms": max(min_latency_ms, max_latency_ms),
        "error_rate": error_rate,
    }
    app["random"] = random.Random(seed)
    app.router.add_post("/v1/chat/completions", handle_chat_completion)
    app.router.add_get("/health", handle_health)
    return app


async def run_server_until_cancelled(host: str, port: int, shutdown_event: asyncio.Event,
                                     ready_event: Optional[threading.Event] = None, **app_kwargs):
    app = await create_app(**app_kwargs)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host=host, port=port)
    await site.start()
    print(f"Mock server listening on http://{host}:{port}")
    if ready_event is not None:
        ready_event.set()
    try:
        await shutdown_event.wait()
    finally:
        await runner.cleanup()


class MockServerThread:
    """Runs the mock server on its own event loop so blocking callers can use it."""

    def __init__(self, host: str = "127.0.0.1", port: int = 8001, **app_kwargs):
        self.host = host
        self.port = port
        self.app_kwargs = app_kwargs
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._ready = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def endpoint_url(self) -> str:
        return f"http://{self.host}:{self.port}/v1/chat/completions"

    def _run(self):
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        self._shutdown_event = asyncio.Event()
        try:
            self._loop.run_until_complete(
                run_server_until_cancelled(self.host, self.port, self._shutdown_event, self._ready, **self.app_kwargs)
            )
        finally:
            self._loop.close()

    def start(self, timeout: float = 10.0):
        self._thread = threading.Thread(target=self._run, name="llmbench-mock-server", daemon=True)
        self._thread.start()
        if not self._ready.wait(timeout):
            raise RuntimeError(f"Mock server did not start within {timeout}s")
        return self

    def stop(self):
        if self._loop is not None and self._shutdown_event is not None:
            self._loop.call_soon_threadsafe(self._shutdown_event.set)
        if self._thread is not None:
            self._thread.join()

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="LLM mock server for llmbench")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind (default 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8001, help="Port to bind (default 8001)")
    parser.add_argument("--min-latency-ms", type=int, default=0, help="Minimum simulated latency (default 0)")
    parser.add_argument("--max-latency-ms", type=int, default=0, help="Maximum simulated latency (default 0)")
    parser.add_argument("--error-rate", type=float, default=0.0, help="Fraction of requests answered with HTTP 500")
    return parser.parse_args()


def main():
    args = parse_args()
    try:
        asyncio.run(run_server_until_cancelled(
            args.host,
            args.port,
            asyncio.Event(),
            min_latency_ms=args.min_latency_ms,
            max_latency_ms=args.max_latency_ms,
            error_rate=args.error_rate
        ))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
