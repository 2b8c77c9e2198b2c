from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .models import CSS, HTML, Container, PackageRequest, PackageSummary
from .rendering import MemoryRenderer, Renderer

logger = logging.getLogger(__name__)

DEFAULT_PARENTS = {
    HTML: "body",
    CSS: "head",
}


def _check_type(content_type: str) -> None:
    if not content_type or not isinstance(content_type, str):
        raise TypeError("You must provide a valid content-type (string)")


class Package:
    """
    A downloaded package of HTML, CSS, JavaScript and any other content type.

    Raw strings are buffered per content type until claimed. HTML and CSS can
    be materialized into containers through the renderer; materializing drains
    the buffered content of that type.
    """

    def __init__(self, request: PackageRequest, renderer: Optional[Renderer] = None):
        if not isinstance(request, PackageRequest):
            raise TypeError("Package expects a PackageRequest")

        self.name = request.package_name
        self.language = request.language
        self.screen = request.screen
        self.density = request.density

        self.renderer: Renderer = renderer if renderer is not None else MemoryRenderer()
        self.content: Dict[str, List[str]] = {}
        self.containers: Dict[str, Container] = {}
        self.parent_elements: Dict[str, str] = dict(DEFAULT_PARENTS)

    def __repr__(self) -> str:
        return f"<Package {self.name} {self.language}/{self.density}>"

    # region content store
    def add_content(self, content_type: str, content: Optional[str]) -> None:
        _check_type(content_type)
        if not content:
            return
        if not isinstance(content, str):
            raise TypeError("Content added to a package must be a string")

        container = self.containers.get(content_type)
        if container is None:
            self.content.setdefault(content_type, []).append(content)
            return

        if content_type == HTML:
            # never overwrite markup that has already been materialized
            if container.content:
                raise ValueError(f'Cannot add content of type "{content_type}" when already created and populated.')
            container.content = content
        elif content_type == CSS:
            container.content += "\n" + content
        else:
            raise TypeError(f"Container of type {content_type} has already been instantiated and cannot be augmented.")

    def claim_content(self, content_type: str) -> Optional[str]:
        """
        Returns the oldest buffered string of the given type and forgets it.
        Call repeatedly until None is returned to drain the type.
        """
        _check_type(content_type)
        queue = self.content.get(content_type)
        if not queue:
            return None
        content = queue.pop(0)
        if not queue:
            del self.content[content_type]
        return content

    def claim_all_content(self, content_type: str, glue: str = "\n") -> Optional[str]:
        _check_type(content_type)
        queue = self.content.pop(content_type, None)
        if not queue:
            return None
        return glue.join(queue)

    def reject_all_content(self, content_type: str) -> None:
        self.content.pop(content_type, None)

    def content_types(self) -> List[str]:
        return [t for t, queue in self.content.items() if queue]

    # endregion

    # region containers
    def inject_container(self, container: Container, parent: Optional[str], before: Optional[Container] = None) -> Container:
        if container is None:
            raise ValueError("No container to inject")
        if not parent:
            raise ValueError("No parent to append to")
        return self.renderer.inject_container(container, parent, before=before)

    def eject_container(self, content_type: str) -> Container:
        container = self.containers.get(content_type)
        if container is None:
            raise KeyError(f'There is no container for type "{content_type}" to eject')
        return self.renderer.eject_container(container)

    def destroy_container(self, content_type: str) -> Container:
        container = self.eject_container(content_type)
        del self.containers[content_type]
        return container

    def destroy(self) -> None:
        """Ejects and forgets all containers and drops any remaining content."""
        for content_type in list(self.containers):
            self.destroy_container(content_type)
        self.content = {}

    def _materialize(self, content_type: str) -> Container:
        container = self.containers.get(content_type)
        if container is None:
            container = self.renderer.create_container(content_type, self.claim_all_content(content_type), self.name)
            self.containers[content_type] = container
        return container

    # endregion

    # region html
    def get_html(self) -> Container:
        return self._materialize(HTML)

    def inject_html(self, parent: Optional[str] = None) -> Container:
        return self.inject_container(self.get_html(), parent or self.parent_elements[HTML])

    def eject_html(self) -> Container:
        return self.eject_container(HTML)

    def show_html(self) -> Container:
        container = self.inject_html()
        container.visible = True
        return container

    def hide_html(self) -> Optional[Container]:
        container = self.containers.get(HTML)
        if container is None:
            return None
        container.visible = False
        return container

    # endregion

    # region css
    def get_css(self) -> Container:
        return self._materialize(CSS)

    def inject_css(self, parent: Optional[str] = None, before: Optional[Container] = None) -> Container:
        return self.inject_container(self.get_css(), parent or self.parent_elements[CSS], before=before)

    def eject_css(self) -> Container:
        return self.eject_container(CSS)

    # endregion

    def summary(self) -> PackageSummary:
        return PackageSummary(
            name=self.name,
            language=self.language,
            screen=self.screen,
            density=self.density,
            content_types=self.content_types(),
            containers=list(self.containers),
        )
