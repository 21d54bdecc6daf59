"""Render a PRD artifact as Markdown.

The PRD comes straight from the model, so any field may hold an unexpected
JSON type; such values are rendered as text rather than rejected.
"""

from __future__ import annotations

from typing import Any

QUALITY_LABELS: dict[str, str] = {
    "functionalSuitability": "Functional suitability",
    "performanceEfficiency": "Performance efficiency",
    "compatibility": "Compatibility",
    "usability": "Usability",
    "reliability": "Reliability",
    "security": "Security",
    "maintainability": "Maintainability",
    "portability": "Portability",
}


def _as_list(value: Any) -> list[Any]:
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    return [value]


def _bullets(items: Any) -> str:
    return "\n".join(f"- {item}" for item in _as_list(items))


def _numbered(items: Any) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(_as_list(items), 1))


def _feature(feature: dict[str, Any]) -> str:
    return (
        f"### {feature.get('name', '')}\n"
        f"{feature.get('description', '')}\n\n"
        f"**Priority**: {feature.get('priority', '')}\n\n"
        f"**Acceptance criteria**:\n{_bullets(feature.get('acceptanceCriteria'))}\n\n"
        f"**Edge cases**:\n{_bullets(feature.get('edgeCases'))}"
    )


def _quality_section(requirements: Any) -> str:
    if not requirements:
        return ""
    if not isinstance(requirements, dict):
        return _bullets(requirements)
    parts = []
    for key, label in QUALITY_LABELS.items():
        item = requirements.get(key)
        if isinstance(item, dict):
            parts.append(
                f"### {label}\n{item.get('description', '')}\n"
                f"{_bullets(item.get('criteria'))}"
            )
        elif item:
            parts.append(f"### {label}\n{item}")
    return "\n\n".join(parts)


def render_prd_markdown(prd: Any, theme: str) -> str:
    """Render the ``prd`` object (not the ``{"prd": ...}`` wrapper)."""
    if not isinstance(prd, dict):
        prd = {"problemDefinition": prd}

    features = "\n\n".join(
        _feature(f) for f in _as_list(prd.get("coreFeatures")) if isinstance(f, dict)
    )
    flows = "\n\n".join(
        f"### {flow.get('name', '')}\n{_numbered(flow.get('steps'))}"
        for flow in _as_list(prd.get("userFlows"))
        if isinstance(flow, dict)
    )
    metrics = "\n".join(
        f"| {m.get('name', '')} | {m.get('definition', '')} | {m.get('target', '')} |"
        for m in _as_list(prd.get("metrics"))
        if isinstance(m, dict)
    )

    return f"""# PRD: {theme}

## Problem definition
{prd.get("problemDefinition", "")}

## Target user
{prd.get("targetUser", "")}

## Jobs to be done
{_numbered(prd.get("jobsToBeDone"))}

## Core features (MVP)
{features}

## Non-goals
{_bullets(prd.get("nonGoals"))}

## User flows
{flows}

## Quality requirements (ISO/IEC 25010)
{_quality_section(prd.get("qualityRequirements"))}

## Metrics
| Metric | Definition | Target |
|--------|------------|--------|
{metrics}
"""
