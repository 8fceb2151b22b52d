from __future__ import annotations

import argparse
import asyncio
import json
import os
from typing import Any, Dict, Optional

from services.errors import StatementIngestError
from services.statement_service import StatementIngestionService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Parse statement PDFs into candidate expenses and print a summary")
    parser.add_argument("paths", nargs="+", help="PDF file paths")
    parser.add_argument("--password", default=None, help="Password for encrypted statements")
    parser.add_argument("--preview", action="store_true", help="Only summarize the prepared text; no extraction")
    parser.add_argument("--local", action="store_true", help="Use the local heuristic parser, never the model")
    parser.add_argument("--no-mask", action="store_true", help="Do not mask personal data before extraction")
    parser.add_argument("--flat", action="store_true", help="Flat text extraction instead of the column grid")
    return parser


async def run(args: argparse.Namespace, service: Optional[StatementIngestionService] = None) -> None:
    # One event loop for every file; the provider client's connection pool is bound to it
    service = service or StatementIngestionService()

    for path in args.paths:
        if not os.path.exists(path):
            print(json.dumps({"file": path, "error": "not_found"}))
            continue
        try:
            with open(path, "rb") as f:
                content = f.read()
            result = await service.parse_statement(
                content=content,
                filename=os.path.basename(path),
                password=args.password,
                mask=not args.no_mask,
                preview=args.preview,
                redact=args.flat,
                local=args.local,
            )
            summary: Dict[str, Any] = {"file": path, "expenses": len(result.expenses)}
            if result.usage:
                summary["usage"] = result.usage
            else:
                summary["items"] = result.expenses
            print(json.dumps(summary, ensure_ascii=False))
        except StatementIngestError as e:
            print(json.dumps({"file": path, "error": e.user_message}))


def main() -> None:
    asyncio.run(run(build_parser().parse_args()))


if __name__ == "__main__":
    main()
