import json
import logging
from typing import Optional, Union

from mcp.server.fastmcp import FastMCP

import pdfplumber

from pdf_highlighter.backends.pdfplumber_backend import load_page_layout
from pdf_highlighter.backends.pypdf2_backend import HighlightDocument
from pdf_highlighter.core import paths as _paths
from pdf_highlighter.core.config import load_llm_config
from pdf_highlighter.core.page_range import parse_page, parse_page_range
from pdf_highlighter.core.paths import find_file, output_path_for
from pdf_highlighter.ner.client import extract_entities as client_extract_entities
from pdf_highlighter.ner.errors import ExtractionError
from pdf_highlighter.ner.prompts import NER_SYSTEM_PROMPT
from pdf_highlighter.pipeline import highlight_entities

logger = logging.getLogger(__name__)

mcp = FastMCP("PDF Entity Highlighter")


@mcp.tool()
async def extract_entities(text: str) -> str:
    """Extract typed named entities (METHOD, DATASET, METRIC, TASK, PERSON,
    MATERIAL, INSTITUTION, TERM) from a passage.

    Every returned entity satisfies `text == passage[start:end]`.
    """
    try:
        entities = await client_extract_entities(text, load_llm_config())
    except ExtractionError as e:
        logger.error(f"Entity extraction failed: {e}")
        return f"Error: {e}"
    return json.dumps({"total_entities": len(entities), "entities": entities}, indent=2, ensure_ascii=False)


@mcp.tool()
async def highlight_pdf_entities(
    file_path: str,
    page: Union[int, str],
    text: str,
    output_path: Optional[str] = None,
    exact_geometry: bool = False,
) -> str:
    """Extract entities from `text` (a passage on `page`) and highlight each one in the PDF.

    Parameters
    ----------
    file_path: str
        Filename (relative) or absolute path to the PDF, within the accessible directories.
    page: int | str
        1-based page number, `first` or `last`.
    text: str
        The selected passage as it appears on the page.
    output_path: Optional[str]
        Where to save the highlighted copy. Defaults to `<name>.highlighted.pdf` beside the input.
    exact_geometry: bool
        Use pdfplumber's per-character boxes instead of estimating character widths.
    """
    path = find_file(file_path)
    if not path:
        return f"Error: Could not find file '{file_path}'."
    try:
        target = output_path_for(path, output_path)
        doc = HighlightDocument(path)
        page_index = parse_page(len(doc.writer.pages), page)
        layout, selection = load_page_layout(path, page_index, snippet=text, exact=exact_geometry)

        result = await highlight_entities(
            text,
            page_index,
            selection,
            load_llm_config(),
            writers=doc.writers(),
            positions=layout.positions,
        )
        if result.written:
            doc.save(target)
    except ValueError as ve:
        return f"Error: {ve}"
    except Exception as e:
        logger.error(f"Highlighting failed for {path.name}: {e}")
        return f"Error: {e}"

    summary = {
        "file_name": path.name,
        "output_path": str(target) if result.written else None,
        "page": page_index + 1,
        "extracted": result.extracted,
        "written": result.written,
        "failed": result.failed,
        "highlights": result.annotations,
    }
    return json.dumps(summary, indent=2, ensure_ascii=False)


@mcp.tool()
async def read_pdf_text(file_path: str, page_range: Optional[str] = None) -> str:
    """Extract page text so a passage can be picked for highlighting.

    `page_range`: `first`, `last`, `N`, `S-E`, or `None` for all pages.
    """
    path = find_file(file_path)
    if not path:
        return f"Error: Could not find file '{file_path}'."
    try:
        with pdfplumber.open(path) as pdf:
            total = len(pdf.pages)
            pages = []
            for i in parse_page_range(total, page_range):
                page_text = (pdf.pages[i].extract_text() or "").strip()
                pages.append({"page_number": i + 1, "text": page_text, "char_count": len(page_text)})
        result = {
            "file_name": path.name,
            "total_pages": total,
            "page_range": page_range or "all",
            "extracted_pages": pages,
        }
        return json.dumps(result, indent=2, ensure_ascii=False)
    except ValueError as ve:
        return f"Error: {ve}"
    except Exception as e:
        logger.error(f"Text extraction failed: {e}")
        return f"Error: {e}"


@mcp.tool()
async def show_configuration() -> str:
    """Return accessible directories, limits and the LLM endpoint (the API key is never shown)."""
    config = load_llm_config()
    info = {
        "accessible_directories": _paths.SEARCH_DIRECTORIES,
        "directory_count": len(_paths.SEARCH_DIRECTORIES),
        "max_file_size_mb": _paths.MAX_FILE_SIZE // (1024 * 1024),
        "allowed_extensions": _paths.ALLOWED_EXTENSIONS,
        "llm": {
            "base_url": config.base_url,
            "model": config.model,
            "api_key_configured": bool(config.api_key),
            "custom_system_prompt": config.system_prompt != NER_SYSTEM_PROMPT,
        },
    }
    return json.dumps(info, indent=2, ensure_ascii=False)
