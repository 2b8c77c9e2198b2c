from __future__ import annotations

import logging

from .models import CSS, HTML, JAVASCRIPT
from .package import Package

logger = logging.getLogger(__name__)


class AssimilationEngine:
    """
    Merges a newer generation of a package (loaded after a client context
    change) into the registered one:

    - JavaScript: dropped, scripts only ever run at first registration
    - HTML: replaces buffered markup, unless already materialized
    - CSS: always replaces, swapping injected stylesheets in place
    - other content types: appended after the existing content

    The incoming package is destroyed afterwards.
    """

    def assimilate(self, target: Package, incoming: Package) -> Package:
        incoming.reject_all_content(JAVASCRIPT)
        self.assimilate_html(target, incoming)
        self.assimilate_css(target, incoming)

        for content_type in list(incoming.content):
            self.assimilate_other(target, incoming, content_type)

        incoming.destroy()
        return target

    def assimilate_html(self, target: Package, incoming: Package) -> None:
        markup = incoming.claim_all_content(HTML)
        if HTML in target.containers:
            if markup:
                logger.debug("Dropping HTML for %s, it has already been materialized", target.name)
            return

        if markup:
            target.content[HTML] = [markup]
        else:
            target.reject_all_content(HTML)

    def assimilate_css(self, target: Package, incoming: Package) -> None:
        stylesheet = incoming.claim_all_content(CSS)

        previous = target.containers.pop(CSS, None)
        if stylesheet:
            target.content[CSS] = [stylesheet]
        else:
            target.reject_all_content(CSS)

        if previous is not None and previous.parent is not None:
            # inject the replacement first so the content is never unstyled
            target.inject_css(previous.parent, before=previous)
            target.renderer.eject_container(previous)

    def assimilate_other(self, target: Package, incoming: Package, content_type: str) -> None:
        strings = incoming.content.get(content_type)
        if not strings:
            return
        target.content.setdefault(content_type, []).extend(strings)
        incoming.reject_all_content(content_type)
