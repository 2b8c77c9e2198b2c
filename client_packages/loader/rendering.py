from __future__ import annotations

from typing import Dict, List, Optional, Protocol

from .models import HTML, Container


class Renderer(Protocol):
    def create_container(self, content_type: str, content: Optional[str], package_name: Optional[str]) -> Container:
        ...

    def inject_container(self, container: Container, parent: str, before: Optional[Container] = None) -> Container:
        ...

    def eject_container(self, container: Container) -> Container:
        ...


class MemoryRenderer:
    """
    Reference renderer. Parents are plain names ("head", "body", ...) holding
    an ordered list of injected containers, which is enough for hosts that
    render elsewhere and for tests.
    """

    def __init__(self):
        self.nodes: Dict[str, List[Container]] = {}

    def create_container(self, content_type: str, content: Optional[str], package_name: Optional[str]) -> Container:
        container = Container(content_type=content_type, package_name=package_name, content=content or "")
        if package_name:
            container.attributes["data-package"] = package_name
        if content_type == HTML:
            # markup starts hidden until the package is displayed
            container.attributes["class"] = "package"
            container.visible = False
        return container

    def inject_container(self, container: Container, parent: str, before: Optional[Container] = None) -> Container:
        if not parent:
            raise ValueError("No parent to append to")
        if container.parent == parent:
            return container
        if container.parent is not None:
            self.eject_container(container)

        children = self.nodes.setdefault(parent, [])
        if before is not None and before in children:
            children.insert(children.index(before), container)
        else:
            children.append(container)
        container.parent = parent
        return container

    def eject_container(self, container: Container) -> Container:
        if container.parent is not None:
            children = self.nodes.get(container.parent, [])
            if container in children:
                children.remove(container)
            container.parent = None
        return container

    def children(self, parent: str) -> List[Container]:
        return list(self.nodes.get(parent, []))
