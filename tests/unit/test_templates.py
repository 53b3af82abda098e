from sitegen.generator.templates import TemplateRenderer, camel_case, jsx_text, pascal_case


def test_case_filters():
    assert pascal_case("coffee-menu") == "CoffeeMenu"
    assert pascal_case("home") == "Home"
    assert camel_case("coffee_menu") == "coffeeMenu"


def test_jsx_escaping():
    assert jsx_text("Fish & Chips {daily} <b>") == "Fish &amp; Chips &#123;daily&#125; &lt;b&gt;"


async def test_render_tree_strips_suffix(tmp_path):
    templates = tmp_path / "templates"
    (templates / "site" / "src").mkdir(parents=True)
    (templates / "site" / "index.html.j2").write_text("<title>{{ name | e }}</title>\n")
    (templates / "site" / "src" / "App.jsx.j2").write_text("// {{ name | pascal_case }}\n")

    renderer = TemplateRenderer(templates)
    written = await renderer.render_tree("site", tmp_path / "out", {"name": "tom & jerry"})

    assert sorted(p.relative_to(tmp_path / "out").as_posix() for p in written) == [
        "index.html",
        "src/App.jsx",
    ]
    assert (tmp_path / "out" / "index.html").read_text() == "<title>tom &amp; jerry</title>\n"
    assert (tmp_path / "out" / "src" / "App.jsx").read_text() == "// Tom&Jerry\n"


async def test_missing_prefix_renders_nothing(tmp_path):
    renderer = TemplateRenderer(tmp_path)
    assert await renderer.render_tree("admin", tmp_path / "out", {}) == []
