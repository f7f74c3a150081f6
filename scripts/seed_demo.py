"""Seed the demo accounts into the configured PostgreSQL database."""

from __future__ import annotations

import asyncio

from coffeechat.seed import main

if __name__ == "__main__":
	asyncio.run(main())
