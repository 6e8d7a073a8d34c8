"""Bibliography and report export helpers."""

from __future__ import annotations

import html
import json
from datetime import datetime

import markdown

from asesor.models import Reference
from asesor.utils import slugify

BANNER_RULE = "=" * 60


def export_text(references: list[Reference], generated_at: datetime | None = None) -> str:
    """Numbered plain-text bibliography with usage totals."""
    stamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M")
    lines = [
        "BIBLIOGRAPHY - Asesor virtual thesis advisor",
        f"Generated: {stamp}",
        BANNER_RULE,
        "",
    ]
    lines.extend(
        f"{number}. {reference_to_line(reference)}"
        for number, reference in enumerate(references, start=1)
    )
    used = sum(1 for reference in references if reference.in_document)
    suggested = sum(1 for reference in references if reference.from_agent)
    lines.extend(
        [
            "",
            BANNER_RULE,
            f"Total references: {len(references)}",
            f"Used in document: {used}",
            f"Suggested by agents: {suggested}",
        ]
    )
    return "\n".join(lines) + "\n"


def reference_to_line(reference: Reference) -> str:
    """``Author (Year). Title. Source. DOI`` with empty parts left out."""
    author = reference.author
    if reference.initials:
        author = f"{author}, {reference.initials}"
    line = f"{author} ({reference.year}). {reference.title.rstrip('.')}."
    if reference.source:
        line += f" {reference.source.rstrip('.')}."
    if reference.doi_link:
        line += f" {reference.doi_link}"
    return line


def export_bibtex(references: list[Reference]) -> str:
    entries = [reference_to_bibtex(reference) for reference in references]
    return "\n\n".join(entries)


def reference_to_bibtex(reference: Reference) -> str:
    key = slugify(f"{reference.surname}-{reference.year}-{reference.title}", max_length=40)
    author = reference.author
    if reference.initials:
        author = f"{author}, {reference.initials}"
    fields = {
        "title": reference.title,
        "author": author.replace(" & ", " and ").replace(" y ", " and "),
        "journal": reference.source or "",
        "year": reference.year,
        "doi": reference.doi_link or "",
    }
    body = ",\n".join(
        f"  {field} = {{{value}}}" for field, value in fields.items() if value
    )
    return f"@article{{{key},\n{body}\n}}"


def export_csl_json(references: list[Reference]) -> str:
    payload = [reference_to_csl(reference) for reference in references]
    return json.dumps(payload, indent=2, ensure_ascii=False)


def reference_to_csl(reference: Reference) -> dict:
    issued = None
    if reference.year.isdigit():
        issued = {"date-parts": [[int(reference.year)]]}
    return {
        "id": reference.id or slugify(f"{reference.surname}-{reference.year}"),
        "type": "article-journal",
        "title": reference.title,
        "DOI": reference.doi_link,
        "container-title": reference.source,
        "author": [{"family": reference.surname, "given": reference.initials or ""}],
        "issued": issued,
    }


def render_report_html(
    title: str,
    text: str,
    references: list[Reference],
    analysis: dict[str, str] | None = None,
    generated_at: datetime | None = None,
) -> str:
    """Standalone HTML thesis report: content, agent feedback and bibliography."""
    stamp = (generated_at or datetime.now()).strftime("%d/%m/%Y")
    paragraphs = "".join(
        f"<p>{html.escape(block)}</p>" for block in text.split("\n") if block.strip()
    )
    sections: list[str] = []
    for heading, body in (analysis or {}).items():
        sections.append(f"<h4>{html.escape(heading)}</h4>")
        sections.append(markdown.markdown(body, extensions=["tables", "sane_lists"]))
    if not sections:
        sections.append("<p><em>No agent analysis has been run for this document.</em></p>")
    items = "".join(
        f"<li>{html.escape(reference_to_line(reference))}</li>" for reference in references
    )
    html_lines = [
        "<html><head><meta charset=\"utf-8\"><title>Thesis Report</title></head><body>",
        "<h1>Thesis Report - Asesor</h1>",
        f"<h2>Document: {html.escape(title)}</h2>",
        f"<p><strong>Words:</strong> {len(text.split())}</p>",
        "<h3>Current content</h3>",
        f"<div>{paragraphs}</div>",
        "<h3>Agent analysis</h3>",
        *sections,
        f"<h3>Bibliography ({len(references)} references)</h3>",
        f"<ul>{items}</ul>",
        f"<footer>Generated by Asesor | {stamp}</footer>",
        "</body></html>",
    ]
    return "\n".join(html_lines)
