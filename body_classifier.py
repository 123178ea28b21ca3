"""Request body sniffing: JSON, XML or plain text."""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from enum import Enum
from typing import Any

from config import TEXT_ENCODING

logger = logging.getLogger(__name__)


class BodyKind(str, Enum):
    JSON = "json"
    XML = "xml"
    STRING = "string"


@dataclass(frozen=True, slots=True)
class ClassifiedBody:
    kind: BodyKind
    value: Any
    raw: bytes


def looks_like_json(text: str) -> bool:
    stripped = text.lstrip()
    return stripped.startswith("{") or stripped.startswith("[")


def looks_like_xml(text: str) -> bool:
    return text.lstrip().startswith("<")


def classify(
    raw: bytes,
    *,
    encoding: str = TEXT_ENCODING,
    logger: logging.Logger = logger,
) -> ClassifiedBody:
    """Turn a raw payload into a typed value without ever raising.

    JSON is tried first, then XML. A body that looks like either but fails to
    parse is demoted to its decoded text and a warning is logged.
    """
    text = raw.decode(encoding, errors="replace")

    if looks_like_json(text):
        try:
            return ClassifiedBody(kind=BodyKind.JSON, value=json.loads(text), raw=raw)
        except (ValueError, RecursionError) as exc:
            logger.warning("json parsing failed, request data type set to string: %s", exc)
    elif looks_like_xml(text):
        try:
            return ClassifiedBody(kind=BodyKind.XML, value=ET.fromstring(text), raw=raw)
        except (ET.ParseError, ValueError, RecursionError) as exc:
            logger.warning("xml parsing failed, request data type set to string: %s", exc)

    return ClassifiedBody(kind=BodyKind.STRING, value=text, raw=raw)
