import asyncio
import sys
import unittest
from pathlib import Path
import pytest
from aiohttp import ClientSession

sys.path.insert(0, str(Path(__file__).parent.parent))

from llmbench.mock_server import build_reply, run_server_until_cancelled


class MockServerTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.host = "127.0.0.1"
        self.port = 8766
        self.shutdown_event = asyncio.Event()
        self.server_task = asyncio.create_task(
            run_server_until_cancelled(self.host, self.port, self.shutdown_event, seed=1)
        )
        await asyncio.sleep(0.5)

    async def asyncTearDown(self):
        self.shutdown_event.set()
        await self.server_task

    async def test_non_stream_response(self):
        url = f"http://{self.host}:{self.port}/v1/chat/completions"
        payload = {
            "model": "mock",
            "messages": [
                {"role": "user", "content": "hello there"}
            ]
        }
        async with ClientSession() as session:
            async with session.post(url, json=payload) as resp:
                self.assertEqual(resp.status, 200)
                body = await resp.json()
                self.assertIn("choices", body)
                self.assertEqual(body["model"], "mock")
                self.assertEqual(body["choices"][0]["message"]["role"], "assistant")
                self.assertEqual(body["choices"][0]["finish_reason"], "stop")
                self.assertEqual(body["usage"]["prompt_tokens"], 2)
                self.assertEqual(
                    body["usage"]["total_tokens"],
                    body["usage"]["prompt_tokens"] + body["usage"]["completion_tokens"]
                )

    async def test_reply_is_deterministic_for_same_messages(self):
        url = f"http://{self.host}:{self.port}/v1/chat/completions"
        payload = {"model": "mock", "messages": [{"role": "user", "content": "same"}]}
        async with ClientSession() as session:
            async with session.post(url, json=payload) as first:
                first_body = await first.json()
            async with session.post(url, json=payload) as second:
                second_body = await second.json()
        self.assertEqual(
            first_body["choices"][0]["message"]["content"],
            second_body["choices"][0]["message"]["content"]
        )

    async def test_invalid_json_rejected(self):
        url = f"http://{self.host}:{self.port}/v1/chat/completions"
        async with ClientSession() as session:
            async with session.post(url, data="not json", headers={"Content-Type": "application/json"}) as resp:
                self.assertEqual(resp.status, 400)
                body = await resp.json()
                self.assertEqual(body["error"], "invalid_json")

    async def test_non_object_body_rejected(self):
        url = f"http://{self.host}:{self.port}/v1/chat/completions"
        async with ClientSession() as session:
            async with session.post(url, json=[]) as resp:
                self.assertEqual(resp.status, 400)
                body = await resp.json()
                self.assertEqual(body["error"], "invalid_json")

    async def test_messages_must_be_list(self):
        url = f"http://{self.host}:{self.port}/v1/chat/completions"
        async with ClientSession() as session:
            async with session.post(url, json={"messages": "hello"}) as resp:
                self.assertEqual(resp.status, 400)

    async def test_health(self):
        url = f"http://{self.host}:{self.port}/health"
        async with ClientSession() as session:
            async with session.get(url) as resp:
                self.assertEqual(resp.status, 200)
                body = await resp.json()
                self.assertEqual(body["status"], "ok")


class FailingMockServerTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.host = "127.0.0.1"
        self.port = 8768
        self.shutdown_event = asyncio.Event()
        self.server_task = asyncio.create_task(
            run_server_until_cancelled(self.host, self.port, self.shutdown_event, error_rate=1.0)
        )
        await asyncio.sleep(0.5)

    async def asyncTearDown(self):
        self.shutdown_event.set()
        await self.server_task

    async def test_error_rate_returns_500(self):
        url = f"http://{self.host}:{self.port}/v1/chat/completions"
        payload = {"model": "mock", "messages": [{"role": "user", "content": "hello"}]}
        async with ClientSession() as session:
            async with session.post(url, json=payload) as resp:
                self.assertEqual(resp.status, 500)
                body = await resp.json()
                self.assertEqual(body["error"], "simulated_failure")


@pytest.mark.asyncio
async def test_latency_is_simulated():
    host, port = "127.0.0.1", 8770
    shutdown_event = asyncio.Event()
    server_task = asyncio.create_task(
        run_server_until_cancelled(host, port, shutdown_event, min_latency_ms=50, max_latency_ms=50)
    )
    await asyncio.sleep(0.5)
    try:
        payload = {"messages": [{"role": "user", "content": "hello"}]}
        async with ClientSession() as session:
            loop = asyncio.get_running_loop()
            start = loop.time()
            async with session.post(f"http://{host}:{port}/v1/chat/completions", json=payload) as resp:
                assert resp.status == 200
                await resp.json()
            assert loop.time() - start >= 0.045
    finally:
        shutdown_event.set()
        await server_task


def test_build_reply_hashes_all_message_contents():
    one = build_reply([{"role": "user", "content": "a"}])
    two = build_reply([{"role": "user", "content": "a"}, {"role": "assistant", "content": "b"}])
    assert one.startswith("[mock][hash:")
    assert one != two
    assert build_reply([{"role": "user"}, "garbage"]) == build_reply([])


if __name__ == "__main__":
    unittest.main()
