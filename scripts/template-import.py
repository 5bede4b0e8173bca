#!/usr/bin/env python3
from __future__ import annotations

from argparse import ArgumentParser
from pathlib import Path

from pipeline.errors import PipelineError
from pipeline.gate import template_requirements
from pipeline.templates import TemplateStore, load_template_file


def main() -> None:
    parser = ArgumentParser(description="Import video templates from YAML or JSON files")
    parser.add_argument("paths", nargs="+", type=Path)
    args = parser.parse_args()

    store = TemplateStore()
    failures = 0
    for path in args.paths:
        try:
            template = store.save_template(load_template_file(path))
            requirements = template_requirements(template)
        except (OSError, PipelineError) as exc:
            failures += 1
            print(f"[template] path={path} error={exc}")
            continue
        print(
            f"[template] path={path} id={template.id} name={template.name} "
            f"requirements={len(requirements)}"
        )
    if failures:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
