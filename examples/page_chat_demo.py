"""Minimal demonstration: open a page, extract it, and ask about it."""

import asyncio
import sys

from page_chat.api.service import browser_services, list_api_settings, open_tab, run_page_chat


async def main(url: str, question: str) -> None:
    async with browser_services(notifier=lambda n: print(f"[{n.level}] {n.message}")) as services:
        print("Settings:", await list_api_settings(services.repository))
        tab = await open_tab(services, url)
        await services.session.refresh_page_content(tab)
        result = await run_page_chat(services.session, question)
        print("User:", question)
        print("Assistant:", result["reply"] or result["error"])


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else "https://github.com/encode/httpx"
    asked = sys.argv[2] if len(sys.argv) > 2 else "Summarize this page in three sentences."
    asyncio.run(main(target, asked))
