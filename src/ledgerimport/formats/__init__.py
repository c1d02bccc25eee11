"""File format adapters.

The adapter is chosen once per file from its extension:

- ``csv``/``tsv``: delimited text
- ``qif``: Quicken line-tagged export
- ``ofx``/``qfx`` (and anything unrecognised): OFX bank statement
- ``xml``: CAMT bank statement
"""

from pathlib import Path
from typing import Optional

from ledgerimport.formats.base import FormatAdapter, ParseOptions, ParsedFile, STANDARD_MAPPING
from ledgerimport.formats.delimited import DelimitedAdapter
from ledgerimport.formats.ofx import CAMTAdapter, OFXAdapter
from ledgerimport.formats.qif import QIFAdapter, tokenize_qif

SUPPORTED_EXTENSIONS = ("csv", "tsv", "qif", "ofx", "qfx", "xml")

_ADAPTERS: dict[str, type[FormatAdapter]] = {
    "csv": DelimitedAdapter,
    "qif": QIFAdapter,
    "ofx": OFXAdapter,
    "qfx": OFXAdapter,
    "xml": CAMTAdapter,
}


def get_file_type(filepath: str) -> str:
    """Return the format tag for a file path.

    ``tsv`` is treated as ``csv``; missing or unknown extensions fall back
    to ``ofx``.
    """
    suffix = Path(filepath).suffix
    if not suffix:
        return "ofx"
    file_type = suffix[1:].lower()
    if file_type == "tsv":
        return "csv"
    if file_type not in _ADAPTERS:
        return "ofx"
    return file_type


def is_bank_statement(file_type: str) -> bool:
    """Return True for formats whose dates and amounts are already typed."""
    return _ADAPTERS.get(file_type, OFXAdapter).resolved_values


def get_adapter(file_type: str) -> FormatAdapter:
    """Return the adapter for a format tag."""
    return _ADAPTERS.get(file_type, OFXAdapter)()


def default_delimiter(filepath: str) -> str:
    """Tab for ``.tsv`` files, comma otherwise."""
    return "\t" if Path(filepath).suffix.lower() == ".tsv" else ","


def read_text(filepath: str) -> str:
    """Read a statement file, accepting UTF-8 (with or without BOM) or Latin-1."""
    data = Path(filepath).read_bytes()
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def parse_file(filepath: str, options: Optional[ParseOptions] = None) -> ParsedFile:
    """Parse a statement file with the adapter matching its extension.

    Raises:
        FileNotFoundError: If the file does not exist
        FormatError: If the contents do not match the format
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {filepath}")
    adapter = get_adapter(get_file_type(filepath))
    return adapter.parse(read_text(filepath), options or ParseOptions())


__all__ = [
    "FormatAdapter",
    "ParseOptions",
    "ParsedFile",
    "STANDARD_MAPPING",
    "SUPPORTED_EXTENSIONS",
    "get_file_type",
    "is_bank_statement",
    "get_adapter",
    "default_delimiter",
    "read_text",
    "parse_file",
    "tokenize_qif",
]
