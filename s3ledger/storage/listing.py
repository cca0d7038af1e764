"""
S3 XML response parsing: ListObjectsV2 pages and error documents.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Optional, Tuple
from urllib.parse import unquote_plus

from s3ledger.core.errors import ParseError
from s3ledger.core.types import Err, Ok, Result


@dataclass(frozen=True, slots=True)
class ListPage:
    """
    One ListObjectsV2 page.

    `next_token` is the service's opaque NextContinuationToken, passed back
    verbatim; None when the listing is complete.
    """
    keys: Tuple[str, ...] = field(default_factory=tuple)
    next_token: Optional[str] = None


def _local(tag: str) -> str:
    """Tag name without its XML namespace."""
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> Optional[str]:
    for child in element:
        if _local(child.tag) == name:
            return child.text or ""
    return None


def parse_list_objects(body: bytes, source: str = "ListObjectsV2") -> Result[ListPage, ParseError]:
    """
    Parse a ListBucketResult document.

    Keys are decoded when the response declares `<EncodingType>url</EncodingType>`
    (S3 form-encodes them, so `+` stands for a space).
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        return Err(ParseError.malformed("list response", source, e))

    if _local(root.tag) != "ListBucketResult":
        return Err(ParseError.malformed(
            "list response", source, ValueError(f"unexpected root <{_local(root.tag)}>")
        ))

    url_encoded = (_child_text(root, "EncodingType") or "").strip().lower() == "url"

    keys = []
    for child in root:
        if _local(child.tag) == "Contents":
            key = _child_text(child, "Key")
            if key:
                keys.append(unquote_plus(key) if url_encoded else key)

    truncated = (_child_text(root, "IsTruncated") or "false").strip().lower() == "true"
    next_token = _child_text(root, "NextContinuationToken") if truncated else None
    if truncated and not next_token:
        return Err(ParseError.malformed(
            "list response", source, ValueError("truncated page without continuation token")
        ))

    return Ok(ListPage(keys=tuple(keys), next_token=next_token))


def parse_error_document(body: bytes) -> Tuple[Optional[str], Optional[str]]:
    """
    Extract (Code, Message) from an S3 error body.

    Error bodies are advisory; anything unparsable yields (None, None).
    """
    if not body:
        return None, None
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return None, None
    if _local(root.tag) != "Error":
        return None, None
    return _child_text(root, "Code"), _child_text(root, "Message")
