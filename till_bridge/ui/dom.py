"""
DOM access for page interception.

Components never touch a document directly: they receive an ElementFinder
and work with PageElements. SoupPage implements both over BeautifulSoup so
pages can be processed (and tested) without a browser.
"""

import inspect
import logging
from typing import Any, Callable, Protocol

from bs4 import BeautifulSoup
from bs4.element import Tag

logger = logging.getLogger('till.bridge.dom')

ClickHandler = Callable[[], Any]

VOID_ELEMENTS = {'input', 'img', 'br', 'hr', 'meta', 'link'}


class PageElement(Protocol):
    """The element operations the drawer UI needs."""

    id: str
    tag_name: str
    text: str
    value: str
    class_name: str
    type: str
    visible: bool
    disabled: bool

    def get_attribute(self, name: str) -> str | None: ...
    def set_attribute(self, name: str, value: str): ...
    def remove_attribute(self, name: str): ...
    def hide(self): ...
    def show(self): ...
    def insert_before(self, element: 'PageElement'): ...
    def insert_after(self, element: 'PageElement'): ...
    def remove(self): ...
    def replace_with_html(self, html: str) -> 'PageElement': ...
    def on_click(self, handler: ClickHandler): ...
    async def click(self): ...


class ElementFinder(Protocol):
    """Lookup and creation of elements in the current page."""

    url: str

    def select(self, selector: str) -> list[PageElement]: ...
    def select_one(self, selector: str) -> PageElement | None: ...
    def get_by_id(self, element_id: str) -> PageElement | None: ...
    def create_element(self, tag_name: str, attributes: dict | None = None, text: str | None = None) -> PageElement: ...


class SoupElement:
    """PageElement backed by a bs4 Tag."""

    def __init__(self, page: 'SoupPage', tag: Tag):
        self._page = page
        self.tag = tag

    def __eq__(self, other):
        return isinstance(other, SoupElement) and other.tag is self.tag

    def __hash__(self):
        return id(self.tag)

    def __repr__(self):
        return f"SoupElement({self.tag_name}#{self.id})"

    # ─── Content ────────────────────────────────────────────────────────

    @property
    def id(self) -> str:
        return self.tag.get('id', '')

    @property
    def tag_name(self) -> str:
        return self.tag.name

    @property
    def text(self) -> str:
        return self.tag.get_text()

    @text.setter
    def text(self, value: str):
        if self.tag.name in VOID_ELEMENTS:
            return
        self.tag.string = value

    @property
    def value(self) -> str:
        if self.tag.name == 'select':
            option = self.tag.find('option', selected=True) or self.tag.find('option')
            if option is None:
                return ''
            return option.get('value', option.get_text())
        if self.tag.name == 'textarea':
            return self.tag.get_text()
        return self.tag.get('value', '')

    @value.setter
    def value(self, value: str):
        self.tag['value'] = value

    @property
    def class_name(self) -> str:
        classes = self.tag.get('class', [])
        if isinstance(classes, str):
            return classes
        return ' '.join(classes)

    @class_name.setter
    def class_name(self, value: str):
        classes = value.split()
        if classes:
            self.tag['class'] = classes
        elif self.tag.has_attr('class'):
            del self.tag['class']

    @property
    def type(self) -> str:
        return self.tag.get('type', '')

    def get_attribute(self, name: str) -> str | None:
        value = self.tag.get(name)
        if isinstance(value, list):
            return ' '.join(value)
        return value

    def set_attribute(self, name: str, value: str):
        self.tag[name] = value

    def remove_attribute(self, name: str):
        if self.tag.has_attr(name):
            del self.tag[name]

    # ─── Visibility and state ───────────────────────────────────────────

    def _styles(self) -> dict:
        styles = {}
        for declaration in self.tag.get('style', '').split(';'):
            if ':' in declaration:
                prop, val = declaration.split(':', 1)
                styles[prop.strip().lower()] = val.strip()
        return styles

    def _set_styles(self, styles: dict):
        if styles:
            self.tag['style'] = '; '.join(f"{k}: {v}" for k, v in styles.items())
        elif self.tag.has_attr('style'):
            del self.tag['style']

    @property
    def visible(self) -> bool:
        return self._styles().get('display') != 'none'

    def hide(self):
        styles = self._styles()
        styles['display'] = 'none'
        self._set_styles(styles)

    def show(self):
        styles = self._styles()
        styles.pop('display', None)
        self._set_styles(styles)

    @property
    def disabled(self) -> bool:
        return self.tag.has_attr('disabled')

    @disabled.setter
    def disabled(self, value: bool):
        if value:
            self.tag['disabled'] = 'disabled'
        elif self.tag.has_attr('disabled'):
            del self.tag['disabled']

    @property
    def is_submit(self) -> bool:
        if self.tag.name == 'input':
            return self.type in ('submit', 'image')
        if self.tag.name == 'button':
            return self.type in ('', 'submit')
        return False

    # ─── Tree ───────────────────────────────────────────────────────────

    @property
    def attached(self) -> bool:
        return self.tag.parent is not None

    def insert_before(self, element: 'SoupElement'):
        """Insert element as the previous sibling of this one."""
        self.tag.insert_before(element.tag)

    def insert_after(self, element: 'SoupElement'):
        """Insert element as the next sibling of this one."""
        self.tag.insert_after(element.tag)

    def append(self, element: 'SoupElement'):
        self.tag.append(element.tag)

    def remove(self):
        self._page.remove_listeners(self)
        self.tag.extract()

    def replace_with_html(self, html: str) -> 'SoupElement':
        fragment = BeautifulSoup(html, 'html.parser')
        new_tag = fragment.find(True)
        self.tag.replace_with(new_tag)
        return SoupElement(self._page, new_tag)

    # ─── Events ─────────────────────────────────────────────────────────

    def on_click(self, handler: ClickHandler):
        self._page.add_listener(self, handler)

    async def click(self):
        await self._page.dispatch_click(self)


class SoupPage:
    """
    ElementFinder over an HTML document.

    Clicks on elements with listeners run the listeners (the default action
    is suppressed). Clicks on submit controls without listeners are recorded
    in ``submissions``.
    """

    def __init__(self, html: str, url: str = ''):
        self.soup = BeautifulSoup(html, 'html.parser')
        self.url = url
        self.submissions: list[SoupElement] = []
        self._listeners: dict[int, tuple[Tag, list[ClickHandler]]] = {}

    @property
    def html(self) -> str:
        return str(self.soup)

    def _wrap(self, tag) -> SoupElement | None:
        if tag is None:
            return None
        return SoupElement(self, tag)

    def select(self, selector: str) -> list[SoupElement]:
        return [SoupElement(self, tag) for tag in self.soup.select(selector)]

    def select_one(self, selector: str) -> SoupElement | None:
        return self._wrap(self.soup.select_one(selector))

    def get_by_id(self, element_id: str) -> SoupElement | None:
        return self._wrap(self.soup.find(id=element_id))

    def find_heading(self, text: str, level: str = 'h1') -> SoupElement | None:
        for tag in self.soup.find_all(level):
            if tag.get_text().strip() == text:
                return SoupElement(self, tag)
        return None

    def create_element(self, tag_name: str, attributes: dict | None = None, text: str | None = None) -> SoupElement:
        tag = self.soup.new_tag(tag_name, attrs=dict(attributes or {}))
        if text is not None and tag_name not in VOID_ELEMENTS:
            tag.string = text
        return SoupElement(self, tag)

    # ─── Events ─────────────────────────────────────────────────────────

    def add_listener(self, element: SoupElement, handler: ClickHandler):
        _, handlers = self._listeners.setdefault(id(element.tag), (element.tag, []))
        handlers.append(handler)

    def remove_listeners(self, element: SoupElement):
        self._listeners.pop(id(element.tag), None)

    def has_listeners(self, element: SoupElement) -> bool:
        return id(element.tag) in self._listeners

    async def dispatch_click(self, element: SoupElement):
        if element.disabled:
            logger.debug(f"Click on disabled {element!r} ignored")
            return

        entry = self._listeners.get(id(element.tag))
        if entry is not None:
            for handler in list(entry[1]):
                result = handler()
                if inspect.isawaitable(result):
                    await result
            return

        if element.is_submit:
            self.submissions.append(element)
            logger.info(f"Form submitted via {element!r}")
