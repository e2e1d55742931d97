#!/usr/bin/env python3
"""
ctxsnap - codebase context snapshots for LLM prompts.

Extracts a project tree into a prompt-ready block, ranks files against a
query, and reduces a large codebase to a token-budgeted minimal context.

Usage:
    ctxsnap extract --dir ./my_app                        # Full formatted block
    ctxsnap extract --dir . --include "src/**/*.ts"       # Only matching files
    ctxsnap search "auth login" --dir .                   # Rank files for a query
    ctxsnap intelligent "auth login" --dir .              # Ranked files with content
    ctxsnap minimal "fix the login form" --dir .          # Token-budgeted context
    ctxsnap context --dir . --adaptive                    # Extract, reduce when too large
    ctxsnap --help                                        # Show help
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from ctxsnap.modules.context_service import DEFAULT_CONTEXT_QUERY, ContextService
from ctxsnap.modules.schemas import ChatContext
from ctxsnap.modules.settings import ConfigError, ContextSettings, load_config, settings_from_config

__version__ = "0.1.0"


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Configure logging with loguru."""
    logger.remove()

    level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
        colorize=True,
    )

    if log_file:
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
        )


def chat_context_from_args(args: argparse.Namespace, configured: ChatContext) -> ChatContext:
    """Command-line globs replace the configured ones section by section."""
    include = getattr(args, "include", None)
    exclude = getattr(args, "exclude", None)
    auto_include = getattr(args, "auto_include", None)
    if not (include or exclude or auto_include):
        return configured

    def _globs(patterns: Optional[List[str]], fallback: List[str]) -> List[Dict[str, str]]:
        return [{"globPath": p} for p in (patterns if patterns else fallback)]

    return ChatContext.model_validate(
        {
            "contextPaths": _globs(include, configured.context_globs),
            "excludePaths": _globs(exclude, configured.exclude_globs),
            "smartContextAutoIncludes": _globs(auto_include, configured.auto_include_globs),
        }
    )


def settings_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {
        "max_tokens": getattr(args, "max_tokens", None),
        "max_files": getattr(args, "max_files", None),
        "recent_days": getattr(args, "recent_days", None),
        "relevance_threshold": getattr(args, "threshold", None),
        "minimal_context_threshold_tokens": getattr(args, "threshold_tokens", None),
    }
    if getattr(args, "smart", False):
        overrides["enable_pro"] = True
        overrides["enable_pro_smart_files_context_mode"] = True
    if getattr(args, "adaptive", False):
        overrides["adaptive_context_enabled"] = True
    return overrides


def _emit(payload: Any, as_json: bool, text: str) -> None:
    if as_json:
        print(json.dumps(payload, indent=2))
    else:
        print(text)


async def run_command(args: argparse.Namespace, settings: ContextSettings, chat_context: ChatContext) -> int:
    service = ContextService()
    target = str(Path(args.dir).resolve())

    if args.command == "extract":
        result = await service.extract_codebase(target, chat_context, settings)
        _emit(result.model_dump(), args.json, result.formatted_output)
        logger.info(f"Extracted {len(result.files)} files")

    elif args.command == "search":
        results = await service.search(target, args.query, args.max_results)
        lines = [
            f"{r.relevance_score:>5}  {r.path}  [{', '.join(r.matched_keywords)}]" for r in results
        ]
        _emit([r.model_dump() for r in results], args.json, "\n".join(lines))

    elif args.command == "intelligent":
        result = await service.build_intelligent_context(target, args.query, args.context_files)
        lines = [f"{f.relevance_score:>5}  {f.path}" for f in result.files]
        _emit(result.model_dump(), args.json, "\n".join(lines))
        logger.info(f"Intelligent context ({result.search_method}): {len(result.files)} files")

    elif args.command == "minimal":
        result = await service.build_minimal_context(target, args.query, settings)
        lines = [
            f"{f.token_count:>6}  {'recent' if f.is_recent else '      '}  {f.path}" for f in result.files
        ]
        _emit(result.model_dump(), args.json, "\n".join(lines))
        logger.info(result.reason)

    elif args.command == "context":
        result = await service.build_codebase_context(target, chat_context, settings, query=args.query)
        _emit(result.model_dump(), args.json, result.formatted_output)
        mode = "minimal" if result.using_minimal_context else "full"
        logger.info(f"Codebase context ({mode}): ~{result.codebase_tokens} tokens before reduction")

    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--dir", "-d", type=str, default=".", help="Project directory (default: current directory)"
    )
    common.add_argument(
        "--config", "-c", type=str, default="config.yaml", help="Path to configuration file (default: config.yaml)"
    )
    common.add_argument("--verbose", "-v", action="store_true", help="Enable verbose/debug output")
    common.add_argument("--log-file", type=str, help="Path to log file (optional)")
    common.add_argument("--json", action="store_true", help="Print results as JSON")

    globs = argparse.ArgumentParser(add_help=False)
    globs.add_argument("--include", action="append", help="Context glob (repeatable)")
    globs.add_argument("--exclude", action="append", help="Exclude glob (repeatable)")
    globs.add_argument("--auto-include", action="append", help="Smart context auto-include glob (repeatable)")
    globs.add_argument("--smart", action="store_true", help="Enable smart context mode")

    reducer = argparse.ArgumentParser(add_help=False)
    reducer.add_argument("--max-tokens", type=int, help="Token budget for minimal context")
    reducer.add_argument("--max-files", type=int, help="File budget for minimal context")
    reducer.add_argument("--recent-days", type=int, help="Recent file window in days")
    reducer.add_argument("--threshold", type=int, help="Minimum relevance score for candidates")

    parser = argparse.ArgumentParser(
        prog="ctxsnap",
        description="Codebase context snapshots for LLM prompts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ctxsnap extract --dir ./my_app
  ctxsnap extract --dir . --include "src/**/*.{ts,tsx}" --exclude "src/legacy/**"
  ctxsnap search "auth controller" --dir . --json
  ctxsnap minimal "fix the login form" --dir . --max-tokens 4000
  ctxsnap context --dir . --adaptive --threshold-tokens 8000
""",
    )
    parser.add_argument("--version", action="version", version=f"ctxsnap {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Available commands")

    subparsers.add_parser(
        "extract",
        parents=[common, globs],
        help="Extract the project into a formatted context block",
    )

    search_parser = subparsers.add_parser("search", parents=[common], help="Rank project files for a query")
    search_parser.add_argument("query", type=str, help="Free-text query")
    search_parser.add_argument("--max-results", type=int, default=10, help="Maximum results (default: 10)")

    intelligent_parser = subparsers.add_parser(
        "intelligent", parents=[common], help="Ranked files with content, glob fallback"
    )
    intelligent_parser.add_argument("query", type=str, help="Free-text query")
    intelligent_parser.add_argument(
        "--max-files", dest="context_files", type=int, default=15, help="Maximum files (default: 15)"
    )

    minimal_parser = subparsers.add_parser(
        "minimal", parents=[common, reducer], help="Token-budgeted minimal context for a query"
    )
    minimal_parser.add_argument("query", type=str, help="Free-text query")

    context_parser = subparsers.add_parser(
        "context",
        parents=[common, globs, reducer],
        help="Extract, switching to minimal context when the codebase is too large",
    )
    context_parser.add_argument(
        "--query", "-q", type=str, default=DEFAULT_CONTEXT_QUERY, help="Query used if minimal context is chosen"
    )
    context_parser.add_argument("--adaptive", action="store_true", help="Enable adaptive context")
    context_parser.add_argument(
        "--threshold-tokens", type=int, help="Codebase estimate above which minimal context is used"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.log_file)

    if not Path(args.dir).is_dir():
        logger.error(f"Directory not found: {args.dir}")
        return 2

    try:
        config = load_config(args.config)
        settings, configured_context = settings_from_config(config, settings_overrides(args))
        chat_context = chat_context_from_args(args, configured_context)
        return asyncio.run(run_command(args, settings, chat_context))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
