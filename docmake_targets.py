# docmake_targets.py
# Target declarations for the documentation site: pages, API docs, the
# language spec as PDF and ebook, and publishing.
from __future__ import annotations

from docmake.actions import (
    apidoc_html,
    apidoc_json,
    cmd,
    copy,
    ddoc,
    ebook,
    git_clone,
    latex,
    rsync,
)
from docmake.dsl import matrix, phony, rule, table, target

COMPONENTS = ["dmd", "druntime", "phobos"]
GIT_HOST = "https://github.com/dlang"

PAGES = [
    "index",
    "download",
    "community",
    "changelog/index",
    "articles/faq",
    "spec/grammar",
    "spec/lex",
]

PHOBOS_MODULES = [
    "std/algorithm/package.d",
    "std/array.d",
    "std/conv.d",
    "std/stdio.d",
    "std/string.d",
]

# empty tree object: diffing against it checks every tracked line
GIT_EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

HTML_MACROS = ["macros.ddoc", "html.ddoc", "$GENERATED/timestamp.ddoc"]


def targets(config):
    publish_dest = config.extra_vars.get("PUBLISH_DEST", "d-programming@digitalmars.com:data/")

    return table(
        # pinned checkouts of the component repositories
        matrix("component", COMPONENTS).targets(
            lambda c: target(
                f"$GENERATED/{c}",
                git_clone(f"{GIT_HOST}/{c}.git", "$DOCSRC_REV", f"$GENERATED/{c}"),
            )
        ),

        # build date macro; suppressed in diffable builds
        target(
            "$GENERATED/timestamp.ddoc",
            cmd("date", "-u", "+BUILD_DATE=%Y-%m-%d", stdout="$TARGET", volatile=True),
        ),

        # any page from its ddoc source
        rule(
            "$DOC_OUTPUT_DIR/%.html",
            ddoc("$STEM.dd", "$TARGET", HTML_MACROS),
            deps=["%.dd", *HTML_MACROS],
        ),

        target(
            "$DOC_OUTPUT_DIR/css/style.min.css",
            cmd("csso", "$SOURCE", "--output", "$TARGET"),
            deps=["css/style.css"],
        ),

        # API documentation: extract the doc database, then render it
        target(
            "$GENERATED/docs-phobos.json",
            apidoc_json(
                [f"$GENERATED/phobos/{m}" for m in PHOBOS_MODULES],
                "$TARGET",
                flags=["-I$GENERATED/druntime/import", "-I$GENERATED/phobos"],
            ),
            deps=["$GENERATED/phobos", "$GENERATED/druntime"],
        ),
        target(
            "$DOC_OUTPUT_DIR/library",
            apidoc_html("$SOURCE", "$TARGET"),
            deps=["$GENERATED/docs-phobos.json"],
        ),

        # the language spec as PDF and ebook
        target(
            "$GENERATED/dlangspec.tex",
            ddoc("spec/spec.dd", "$TARGET", ["macros.ddoc", "latex.ddoc"]),
            deps=["spec/spec.dd", "macros.ddoc", "latex.ddoc"],
        ),
        target(
            "$DOC_OUTPUT_DIR/dlangspec.pdf",
            latex("$SOURCE", "$GENERATED"),
            copy("$GENERATED/dlangspec.pdf", "$TARGET"),
            deps=["$GENERATED/dlangspec.tex"],
        ),
        target(
            "$GENERATED/ebook/dlangspec.opf",
            ddoc("spec/spec.dd", "$TARGET", ["macros.ddoc", "ebook.ddoc"]),
            deps=["spec/spec.dd", "macros.ddoc", "ebook.ddoc"],
        ),
        target(
            "$DOC_OUTPUT_DIR/dlangspec.mobi",
            ebook("$SOURCE", "dlangspec.mobi"),
            copy("$GENERATED/ebook/dlangspec.mobi", "$TARGET"),
            deps=["$GENERATED/ebook/dlangspec.opf"],
        ),

        # entry points
        phony("html", deps=[f"$DOC_OUTPUT_DIR/{p}.html" for p in PAGES]),
        phony("docs", deps=["$DOC_OUTPUT_DIR/library"]),
        phony("pdf", deps=["$DOC_OUTPUT_DIR/dlangspec.pdf"]),
        phony("ebook", deps=["$DOC_OUTPUT_DIR/dlangspec.mobi"]),
        phony("all", deps=["html", "$DOC_OUTPUT_DIR/css/style.min.css", "docs"]),
        phony(
            "test",
            cmd("git", "diff", "--check", GIT_EMPTY_TREE, "--", "*.dd", "*.ddoc"),
        ),
        phony(
            "rsync",
            rsync("$DOC_OUTPUT_DIR/", publish_dest),
            deps=["all", "pdf", "ebook"],
        ),
    )
