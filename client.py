"""Smoke-test client: installs the capture agent and reports a few failures."""

import asyncio
import dataclasses
import logging
import os
import sys

from telemetry.agent import CaptureAgent
from telemetry.config import load_agent_config


async def _failing_task():
    raise RuntimeError("stream manifest could not be parsed")


async def _run(agent: CaptureAgent):
    agent.install_global_handlers()
    task = asyncio.ensure_future(_failing_task())
    await asyncio.sleep(0.1)
    # Dropping the last reference makes the loop report the unretrieved exception
    del task
    await asyncio.sleep(0.1)


def main():
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s [telemetry-client] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    config = load_agent_config(os.environ.get("CONFIG_PATH", "config.yaml"))
    if len(sys.argv) > 1:
        config = dataclasses.replace(config, endpoint_url=sys.argv[1])

    agent = CaptureAgent(config)
    agent.check_config()

    try:
        {}["channel_id"]
    except KeyError as e:
        agent.report(e, source="client.py", context="Channel lookup")

    asyncio.run(_run(agent))

    agent.flush(timeout=config.timeout_seconds + 1)
    agent.close()
    print(f"Sent: {agent.sent}  Failed: {agent.failed}  Dropped: {agent.dropped}")


if __name__ == "__main__":
    main()
