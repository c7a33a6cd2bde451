"""DOT serialization, layout rendering and the image cache."""

from __future__ import annotations

from gonlineviz.render.cache import RenderCache
from gonlineviz.render.dot_writer import DotWriter, quote_id
from gonlineviz.render.layout import LayoutRenderer

__all__ = ["DotWriter", "LayoutRenderer", "RenderCache", "quote_id"]
