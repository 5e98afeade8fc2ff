#!/usr/bin/env python3
"""
PDF Entity Highlighter MCP Server
Extracts academic named entities from a passage with an LLM and writes one
colored highlight annotation per entity onto the PDF page the passage came from.

LLM settings come from the environment, read on every request:
  PDF_HIGHLIGHTER_API_KEY, PDF_HIGHLIGHTER_BASE_URL,
  PDF_HIGHLIGHTER_MODEL, PDF_HIGHLIGHTER_SYSTEM_PROMPT
"""

import argparse
import logging
from typing import List

from pdf_highlighter.core import paths as _paths
from pdf_highlighter.core.paths import setup_search_directories
from pdf_highlighter.tools.mcp_tools import mcp

logger = logging.getLogger("PDFHighlighter")


def parse_arguments(argv: List[str] = None):
    """Parse CLI arguments to configure accessible directories and limits."""
    parser = argparse.ArgumentParser(
        description="PDF Entity Highlighter MCP Server: LLM entity extraction with PDF highlights",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "\nExamples:\n"
            "  python main.py ~/Papers\n"
            "  python main.py --allow-dir ~/Papers --allow-dir /shared/pdfs --log-level DEBUG\n"
        ),
    )
    parser.add_argument(
        "directories",
        nargs="*",
        help="Accessible directories for PDFs (space-separated)",
    )
    parser.add_argument(
        "--allow-dir",
        action="append",
        dest="allowed_dirs",
        help="Add an allowed directory (can be used multiple times)",
    )
    parser.add_argument(
        "--max-file-size",
        type=int,
        default=_paths.MAX_FILE_SIZE,
        help="Maximum file size in bytes (default: 100MB)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def main(argv: List[str] = None) -> None:
    args = parse_arguments(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    directories = list(args.directories or []) + list(args.allowed_dirs or [])
    setup_search_directories(directories, args.max_file_size)

    logger.info("Starting PDF Entity Highlighter MCP Server...")
    logger.info(f"Accessible directories: {_paths.SEARCH_DIRECTORIES}")
    logger.info(f"Maximum file size: {_paths.MAX_FILE_SIZE // (1024 * 1024)} MB")
    mcp.run()


if __name__ == "__main__":
    main()
