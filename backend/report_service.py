"""
MysticRead AI — Report Export
Readings and chat transcripts rendered as plain text or Word (.docx) documents.
"""
from io import BytesIO
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from docx import Document
from docx.shared import Pt, RGBColor
from docx.enum.text import WD_ALIGN_PARAGRAPH

BRAND      = "MysticRead AI"
PURPLE     = RGBColor(107, 33, 168)
SLATE      = RGBColor(100, 116, 139)
DISCLAIMER = (
    "AI-Generated Content: this report contains AI-generated interpretations intended "
    "for entertainment and self-reflection, not professional advice."
)


@dataclass
class Report:
    title: str
    subtitle: str
    stats: List[Tuple[str, str]] = field(default_factory=list)
    sections: List[Tuple[str, List[str]]] = field(default_factory=list)
    messages: List[dict] = field(default_factory=list)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ─── Content builders ────────────────────────────────────────────────

def humanize(key: str) -> str:
    """camelCase key → "Camel Case" heading."""
    words, current = [], ""
    for ch in key.rstrip("_"):
        if ch.isupper() and current:
            words.append(current)
            current = ch
        else:
            current += ch
    words.append(current)
    return " ".join(w[:1].upper() + w[1:] for w in words if w)


def _lines(value: Any, indent: str = "") -> List[str]:
    if isinstance(value, dict):
        out = []
        for k, v in value.items():
            if isinstance(v, (dict, list)):
                out.append(f"{indent}{humanize(k)}:")
                out.extend(_lines(v, indent + "  "))
            else:
                out.append(f"{indent}{humanize(k)}: {_scalar(v)}")
        return out
    if isinstance(value, list):
        out = []
        for item in value:
            if isinstance(item, dict):
                out.extend(_lines(item, indent))
                out.append("")
            else:
                out.append(f"{indent}• {_scalar(item)}")
        if out and out[-1] == "":
            out.pop()
        return out
    return [f"{indent}{_scalar(value)}"]


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "Yes" if value else "No"
    return str(value)


def analysis_stats(kind: str, result: dict) -> List[Tuple[str, str]]:
    """Headline numbers shown at the top of a reading report."""
    if kind == "palm":
        return [
            ("Life Energy",       f"{result.get('lifeEnergyPercentage')}%"),
            ("Emotional Balance", f"{result.get('emotionalBalancePercentage')}%"),
            ("Career Potential",  f"{result.get('careerPotentialPercentage')}%"),
        ]
    if kind == "astrology":
        return [
            ("Sun Sign",    str(result.get("sunSign"))),
            ("Moon Sign",   str(result.get("moonSign"))),
            ("Rising Sign", str(result.get("risingSign"))),
        ]
    if kind == "vastu":
        return [
            ("Vastu Score", f"{result.get('overallScore')}/100"),
            ("Rooms Assessed", str(len(result.get("roomAnalysis", [])))),
        ]
    if kind == "numerology":
        core = result.get("coreNumbers", {})
        return [
            ("Life Path",  str(core.get("lifePathNumber", {}).get("number"))),
            ("Destiny",    str(core.get("destinyNumber", {}).get("number"))),
            ("Soul Urge",  str(core.get("soulUrgeNumber", {}).get("number"))),
        ]
    if kind == "tarot":
        return [
            ("Spread", str(result.get("spreadType"))),
            ("Cards",  str(len(result.get("cardAnalysis", [])))),
        ]
    return []


def analysis_report(record) -> Report:
    kind = getattr(record, "type", "palm")
    result = record.analysis_result or {}
    sections = [(humanize(key), _lines(value)) for key, value in result.items()]
    created = record.created_at.strftime("%B %d, %Y") if record.created_at else ""
    return Report(
        title=f"{humanize(kind)} Reading",
        subtitle=f"Analysis {record.id} · {created}",
        stats=analysis_stats(kind, result),
        sections=sections,
    )


def chat_report(
    messages: List[dict],
    report_type: str,
    analysis_kind: Optional[str] = None,
    credits_used: Optional[int] = None,
) -> Report:
    """`report_type` is "ai-chat" (credit chat) or "post-analysis" (reading follow-up)."""
    user_count = sum(1 for m in messages if m["role"] == "user")
    stats = [
        ("Total Messages", str(len(messages))),
        ("Your Questions", str(user_count)),
        ("AI Responses",   str(len(messages) - user_count)),
    ]
    if report_type == "ai-chat":
        title = "AI Chat Session"
        if credits_used is not None:
            stats.append(("Credits Used", str(credits_used)))
    else:
        title = f"{humanize(analysis_kind or 'analysis')} Reading Chat"
        stats.append(("Chat", "Unlimited"))
    return Report(title=title, subtitle="Conversation transcript", stats=stats, messages=messages)


def report_filename(report_type: str, analysis_kind: Optional[str] = None, ext: str = "txt",
                    now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    date = now.strftime("%Y-%m-%d")
    stamp = int(now.timestamp() * 1000)
    if report_type == "ai-chat":
        return f"MysticRead_AI_Chat_{date}_{stamp}.{ext}"
    kind = humanize(analysis_kind) if analysis_kind else "Analysis"
    if report_type == "post-analysis":
        return f"MysticRead_{kind}_Chat_{date}_{stamp}.{ext}"
    return f"MysticRead_{kind}_Report_{date}.{ext}"


# ─── Renderers ───────────────────────────────────────────────────────

def render_text(report: Report) -> str:
    rule = "=" * 60
    out = [rule, f"{BRAND} — {report.title}".center(60), report.subtitle.center(60), rule, ""]
    if report.stats:
        out.extend(f"{label}: {value}" for label, value in report.stats)
        out.append("")
    for heading, lines in report.sections:
        out.append(heading.upper())
        out.append("-" * len(heading))
        out.extend(lines)
        out.append("")
    for m in report.messages:
        speaker = "You" if m["role"] == "user" else BRAND
        stamp = f" [{m['createdAt']}]" if m.get("createdAt") else ""
        out.append(f"{speaker}{stamp}:")
        out.append(m["content"])
        out.append("")
    out.append(DISCLAIMER)
    out.append(f"Generated by {BRAND} on {report.generated_at.strftime('%B %d, %Y %H:%M')} UTC")
    return "\n".join(out) + "\n"


def render_docx(report: Report) -> bytes:
    doc = Document()

    p = doc.add_paragraph()
    p.alignment = WD_ALIGN_PARAGRAPH.CENTER
    run = p.add_run(report.title)
    run.bold = True
    run.font.size = Pt(24)
    run.font.color.rgb = PURPLE

    p = doc.add_paragraph()
    p.alignment = WD_ALIGN_PARAGRAPH.CENTER
    run = p.add_run(report.subtitle)
    run.font.size = Pt(11)
    run.font.color.rgb = SLATE

    if report.stats:
        table = doc.add_table(rows=2, cols=len(report.stats))
        table.style = "Light Grid Accent 1"
        for i, (label, value) in enumerate(report.stats):
            table.rows[0].cells[i].text = label
            table.rows[1].cells[i].text = value

    for heading, lines in report.sections:
        doc.add_heading(heading, level=2)
        for line in lines:
            if not line:
                continue
            stripped = line.strip()
            if stripped.startswith("• "):
                doc.add_paragraph(stripped[2:], style="List Bullet")
            else:
                doc.add_paragraph(stripped)

    if report.messages:
        doc.add_heading("Conversation", level=2)
        for m in report.messages:
            p = doc.add_paragraph()
            speaker = p.add_run("You: " if m["role"] == "user" else f"{BRAND}: ")
            speaker.bold = True
            speaker.font.color.rgb = SLATE if m["role"] == "user" else PURPLE
            p.add_run(m["content"])

    p = doc.add_paragraph()
    run = p.add_run(DISCLAIMER)
    run.italic = True
    run.font.size = Pt(9)
    run.font.color.rgb = SLATE

    buffer = BytesIO()
    doc.save(buffer)
    return buffer.getvalue()
