from client_packages.loader import CSS, HTML, JAVASCRIPT, AssimilationEngine, Package, PackageRequest


def make_package(renderer, language="en", **content):
    request = PackageRequest(app_name="game", package_name="home", language=language, screen="800x600", density=1)
    package = Package(request, renderer=renderer)
    for content_type, strings in content.items():
        for string in strings:
            package.add_content(content_type, string)
    return package


def test_buffered_html_is_replaced(renderer):
    target = make_package(renderer)
    target.content[HTML] = ["A"]
    incoming = make_package(renderer, language="ja")
    incoming.content[HTML] = ["B"]

    AssimilationEngine().assimilate(target, incoming)

    assert target.content[HTML] == ["B"]
    assert incoming.content == {}


def test_materialized_html_is_kept(renderer):
    target = make_package(renderer)
    target.content[HTML] = ["A"]
    container = target.show_html()
    incoming = make_package(renderer, language="ja")
    incoming.content[HTML] = ["B"]

    AssimilationEngine().assimilate(target, incoming)

    assert target.containers[HTML] is container
    assert container.content == "A"
    assert HTML not in target.content
    assert incoming.content == {}


def test_scripts_are_never_carried_forward(renderer):
    for target_scripts in ([], ["old()"]):
        target = make_package(renderer)
        if target_scripts:
            target.content[JAVASCRIPT] = list(target_scripts)
        incoming = make_package(renderer, language="ja")
        incoming.content[JAVASCRIPT] = ["new()"]

        AssimilationEngine().assimilate(target, incoming)

        assert target.content.get(JAVASCRIPT, []) == target_scripts
        assert JAVASCRIPT not in incoming.content


def test_buffered_css_is_replaced(renderer):
    target = make_package(renderer)
    target.content[CSS] = [".old{}"]
    incoming = make_package(renderer, language="ja")
    incoming.content[CSS] = [".new{}", ".newer{}"]

    AssimilationEngine().assimilate(target, incoming)

    assert target.content[CSS] == [".new{}\n.newer{}"]
    assert CSS not in target.containers


def test_injected_css_is_swapped_in_place(renderer):
    other = make_package(renderer)
    other.name = "other"
    other.content[CSS] = [".other{}"]
    other_css = other.inject_css()

    target = make_package(renderer)
    target.content[CSS] = [".old{}"]
    old_css = target.inject_css()
    trailing = renderer.create_container(CSS, ".trailing{}", "trailing")
    renderer.inject_container(trailing, "head")

    incoming = make_package(renderer, language="ja")
    incoming.content[CSS] = [".new{}"]

    AssimilationEngine().assimilate(target, incoming)

    new_css = target.containers[CSS]
    assert new_css is not old_css
    assert new_css.content == ".new{}"
    assert old_css.parent is None
    assert renderer.children("head") == [other_css, new_css, trailing]
    assert CSS not in target.content


def test_materialized_but_detached_css_is_forgotten(renderer):
    target = make_package(renderer)
    target.content[CSS] = [".old{}"]
    target.get_css()
    incoming = make_package(renderer, language="ja")
    incoming.content[CSS] = [".new{}"]

    AssimilationEngine().assimilate(target, incoming)

    assert CSS not in target.containers
    assert target.content[CSS] == [".new{}"]
    assert renderer.children("head") == []


def test_other_types_are_appended_in_order(renderer):
    target = make_package(renderer)
    target.content["application/json"] = ["1", "2"]
    incoming = make_package(renderer, language="ja")
    incoming.content["application/json"] = ["3", "4"]
    incoming.content["text/plain"] = ["only incoming"]

    AssimilationEngine().assimilate(target, incoming)

    assert target.content["application/json"] == ["1", "2", "3", "4"]
    assert target.content["text/plain"] == ["only incoming"]
    assert incoming.content == {}


def test_incoming_containers_are_ejected(renderer):
    target = make_package(renderer)
    incoming = make_package(renderer, language="ja")
    incoming.content[HTML] = ["<p>x</p>"]
    incoming.inject_html()

    AssimilationEngine().assimilate(target, incoming)

    assert incoming.containers == {}
    assert renderer.children("body") == []
