from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace

from rag_chat.app.settings import AppSettings
from rag_chat.app.wiring import build_bundle, load_seed_texts
from rag_chat.domain.errors import RagChatError, SeedingError


def _apply_overrides(settings: AppSettings, args: argparse.Namespace) -> AppSettings:
    eng = settings.engine
    rag = settings.rag

    if args.llm is not None:
        eng = replace(eng, llm_backend=args.llm)
    if args.embedder is not None:
        eng = replace(eng, embedder_backend=args.embedder)
    if args.seed_file is not None:
        rag = replace(rag, seed_file=args.seed_file)
    if args.seed_policy is not None:
        rag = replace(rag, seed_policy=args.seed_policy)
    if args.top_k is not None:
        rag = replace(rag, top_k=args.top_k)

    return replace(settings, engine=eng, rag=rag)


async def _repl(settings: AppSettings, *, stream: bool, debug: bool) -> int:
    bundle = build_bundle(settings)
    try:
        try:
            n = await bundle.seeder.seed(load_seed_texts(settings))
        except SeedingError as e:
            print(f"Seeding failed: {e}", file=sys.stderr)
            return 1

        print(f"Knowledge base: {n} documents")
        print("Type /exit to quit.\n")

        while True:
            user_text = (await asyncio.to_thread(input, "you> ")).strip()
            if not user_text:
                continue
            if user_text == "/exit":
                break

            if stream:
                print("bot> ", end="", flush=True)
                async for token in bundle.engine.stream_message(user_text):
                    print(token, end="", flush=True)
                print("\n")
                continue

            try:
                answer, meta = await bundle.engine.handle_message_ex(user_text)
            except RagChatError as e:
                print(f"bot> (error: {e})\n")
                continue

            print(f"bot> {answer}\n")
            if debug:
                print("debug> " + json.dumps(meta, ensure_ascii=False, indent=2) + "\n")
    finally:
        await bundle.aclose()

    return 0


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--debug", action="store_true")
    parser.add_argument("--stream", action="store_true", help="Stream tokens as they arrive")

    parser.add_argument("--llm", choices=["mock", "openai", "ollama"], default=None)
    parser.add_argument("--embedder", choices=["hash", "openai", "sbert"], default=None)
    parser.add_argument("--seed-file", default=None, help="Text file with seed paragraphs")
    parser.add_argument("--seed-policy", choices=["fail_fast", "partial"], default=None)
    parser.add_argument("--top-k", type=int, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    settings = _apply_overrides(AppSettings.from_env(), args)
    sys.exit(asyncio.run(_repl(settings, stream=args.stream, debug=args.debug)))


def serve() -> None:
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    settings = AppSettings.from_env()
    log = logging.getLogger("rag_chat")
    log.info(f"Server running on port {settings.server.port}")
    uvicorn.run("rag_chat.app.api:app", host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
