"""
Smoke-test a running speech-relay against concurrent identical requests.

Usage:
    python scripts/concurrent_requests.py --url http://127.0.0.1:8000 --count 5

Sends one warm-up request, then `count` concurrent requests for the same
text, then the same batch again once the artifact has been stored. The
second batch should report X-Cache: hit.
"""
import argparse
import asyncio
import time

import httpx


async def fetch(client, base_url, text, voice, i):
    start = time.time()
    try:
        resp = await client.get(f"{base_url}/v1/speech", params={"text": text, "voiceId": voice})
        print(
            f"Req {i}: {resp.status_code} cache={resp.headers.get('x-cache', '-')} "
            f"bytes={len(resp.content)} in {time.time()-start:.2f}s"
        )
    except httpx.HTTPError as e:
        print(f"Req {i} failed: {e}")


async def main(args):
    async with httpx.AsyncClient(timeout=60.0) as client:
        print("Sending warmup...")
        await fetch(client, args.url, "Warm-up request.", args.voice, 0)

        text = f"Concurrent request test at {int(time.time())}."
        for batch in ("cold", "warm"):
            print(f"Sending {args.count} concurrent requests ({batch})...")
            start = time.time()
            await asyncio.gather(*(fetch(client, args.url, text, args.voice, i) for i in range(1, args.count + 1)))
            print(f"Total batch time: {time.time()-start:.2f}s")
            await asyncio.sleep(args.settle)

        try:
            resp = await client.get(f"{args.url}/metrics")
            print("Metrics:")
            print("\n".join(line for line in resp.text.splitlines() if line.startswith("speech_relay_")))
        except httpx.HTTPError as e:
            print("Could not fetch metrics:", e)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrent request smoke test")
    parser.add_argument("--url", default="http://127.0.0.1:8000")
    parser.add_argument("--voice", default="JBFqnCBsd6RMkjVDRZzb")
    parser.add_argument("--count", type=int, default=5)
    parser.add_argument("--settle", type=float, default=1.0, help="Seconds to wait between batches")
    asyncio.run(main(parser.parse_args()))
