"""Minimal demonstration of the summarizer service (requires LLM_API_KEY)."""

import asyncio

from summarizer_core.api.service import get_default_service


async def main():
    service = get_default_service()
    service.start()
    try:
        text = "Python 是一种广泛使用的高级编程语言，强调代码可读性，支持多种编程范式。"
        job_id = service.submit_summary(text, resource_id="demo://python-intro")
        print("Request:", job_id, service.poll(job_id)["status"])
        print("Result:", await service.wait(job_id))
        print("Cache:", await service.get_cache_stats())
    finally:
        await service.aclose()


if __name__ == "__main__":
    asyncio.run(main())
