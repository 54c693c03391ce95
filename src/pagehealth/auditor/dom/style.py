# src/pagehealth/auditor/dom/style.py
import logging
import re
from typing import Dict, List, Optional, Tuple

import soupsieve
from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel

from pagehealth.auditor.color import parse_color

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#000000"
DEFAULT_BACKGROUND = "#ffffff"
DEFAULT_FONT_SIZE_PX = 16.0
DEFAULT_FONT_WEIGHT = "normal"

_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_RULE_RE = re.compile(r"([^{}]+)\{([^{}]*)\}")
_SIZE_RE = re.compile(r"^([\d.]+)\s*(px|pt|em|rem|%)?$")

_KEYWORD_SIZES = {
    "xx-small": 9.0, "x-small": 10.0, "small": 13.0, "medium": 16.0,
    "large": 18.0, "x-large": 24.0, "xx-large": 32.0,
}


class ComputedStyle(BaseModel):
    """The subset of computed style the contrast check needs."""
    color: str = DEFAULT_COLOR
    background: str = DEFAULT_BACKGROUND
    font_size_px: float = DEFAULT_FONT_SIZE_PX
    font_weight: str = DEFAULT_FONT_WEIGHT


def parse_declarations(block: str) -> Dict[str, str]:
    """Parses 'a: b; c: d' into a lowercase-keyed dict."""
    declarations = {}
    for part in block.split(";"):
        if ":" not in part:
            continue
        prop, value = part.split(":", 1)
        prop = prop.strip().lower()
        value = value.replace("!important", "").strip()
        if prop and value:
            declarations[prop] = value
    return declarations


def strip_at_rules(css: str) -> str:
    """
    Removes top-level at-rules: conditional blocks such as `@media` or
    `@supports` (with everything nested inside them) and statements such as
    `@import ...;`. Their conditions are not evaluated, so none of their rules apply.
    """
    kept = []
    depth = 0
    skipping = False
    for char in css:
        if skipping:
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    skipping = False
            elif char == ";" and depth == 0:
                skipping = False
            continue
        if char == "@" and depth == 0:
            skipping = True
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth = max(depth - 1, 0)
        kept.append(char)
    return "".join(kept)


class StyleResolver:
    """
    Minimal cascade over inline `style` attributes and `<style>` rules.

    Selectors are matched with soupsieve (the engine behind `soup.select`).
    Rules apply in source order (later wins, specificity is not weighed) and
    inline declarations win over rules. At-rule blocks are skipped. `color`
    and `font-*` inherit; the background is taken from the nearest ancestor
    (or self) that declares a parseable one.
    """

    def __init__(self, soup: BeautifulSoup):
        self.rules: List[Tuple[str, Dict[str, str]]] = []
        self._rule_declarations: Dict[int, Dict[str, str]] = {}
        self._declared_cache: Dict[int, Dict[str, str]] = {}
        self._size_cache: Dict[int, float] = {}

        for style_tag in soup.find_all("style"):
            self._load_stylesheet(style_tag.get_text() or "")
        self._match_rules(soup)
        logger.debug("StyleResolver loaded %d rules", len(self.rules))

    def _load_stylesheet(self, css: str):
        css = strip_at_rules(_COMMENT_RE.sub("", css))
        for match in _RULE_RE.finditer(css):
            declarations = parse_declarations(match.group(2))
            if not declarations:
                continue
            for raw_selector in match.group(1).split(","):
                selector = raw_selector.strip()
                if selector:
                    self.rules.append((selector, declarations))

    def _match_rules(self, soup: BeautifulSoup):
        for selector, declarations in self.rules:
            try:
                matched = soup.select(selector)
            except (soupsieve.SelectorSyntaxError, NotImplementedError) as e:
                logger.debug("Skipping unsupported selector %r: %s", selector, e)
                continue
            for tag in matched:
                self._rule_declarations.setdefault(id(tag), {}).update(declarations)

    def declared(self, tag: Tag) -> Dict[str, str]:
        """Declarations that apply directly to `tag` (rules, then inline)."""
        key = id(tag)
        if key in self._declared_cache:
            return self._declared_cache[key]

        merged: Dict[str, str] = dict(self._rule_declarations.get(key, {}))
        merged.update(parse_declarations(tag.get("style") or ""))

        self._declared_cache[key] = merged
        return merged

    def _lineage(self, tag: Tag):
        node = tag
        while isinstance(node, Tag) and node.name != "[document]":
            yield node
            node = node.parent

    def _inherited(self, tag: Tag, prop: str, default: str) -> str:
        for node in self._lineage(tag):
            value = self.declared(node).get(prop)
            if value and value.lower() not in ("inherit", "initial", "unset"):
                return value
        return default

    def background(self, tag: Tag) -> str:
        for node in self._lineage(tag):
            declared = self.declared(node)
            for prop in ("background-color", "background"):
                value = declared.get(prop)
                if not value:
                    continue
                if prop == "background-color":
                    if value.lower() != "transparent":
                        return value
                    continue
                color_token = self._color_from_shorthand(value)
                if color_token:
                    return color_token
        return DEFAULT_BACKGROUND

    @staticmethod
    def _color_from_shorthand(value: str) -> Optional[str]:
        if parse_color(value):
            return value
        # Keep rgb()/rgba() groups intact while splitting the shorthand
        for token in re.findall(r"rgba?\([^)]*\)|[^\s]+", value):
            if parse_color(token):
                return token
        return None

    def font_size(self, tag: Tag) -> float:
        if id(tag) in self._size_cache:
            return self._size_cache[id(tag)]

        # Resolve root-first so relative units see their parent's size
        pending = []
        size = DEFAULT_FONT_SIZE_PX
        for node in self._lineage(tag):
            if id(node) in self._size_cache:
                size = self._size_cache[id(node)]
                break
            pending.append(node)

        for node in reversed(pending):
            raw = (self.declared(node).get("font-size") or "").lower()
            if raw:
                size = self._resolve_size(raw, size)
            self._size_cache[id(node)] = size
        return size

    @staticmethod
    def _resolve_size(raw: str, parent_size: float) -> float:
        if raw in _KEYWORD_SIZES:
            return _KEYWORD_SIZES[raw]
        match = _SIZE_RE.match(raw)
        if not match:
            return parent_size
        number = float(match.group(1))
        unit = match.group(2) or "px"
        if unit == "px":
            return number
        if unit == "pt":
            return number * 4 / 3
        if unit == "rem":
            return number * DEFAULT_FONT_SIZE_PX
        if unit == "em":
            return number * parent_size
        return number * parent_size / 100

    def computed(self, tag: Tag) -> ComputedStyle:
        return ComputedStyle(
            color=self._inherited(tag, "color", DEFAULT_COLOR),
            background=self.background(tag),
            font_size_px=self.font_size(tag),
            font_weight=self._inherited(tag, "font-weight", DEFAULT_FONT_WEIGHT),
        )
