"""Requirement analysis — NLI contradiction detection and quality checks.

Contradictions (HuggingFace inference):
  1. Every pair (i < j) of requirement texts long enough to judge is
     scored for semantic similarity.
  2. Pairs at or above the similarity threshold are run through the NLI
     model in both directions; the larger contradiction score counts.
  3. Pairs at or above the NLI threshold are reported.

  A similarity of exactly 0 means the call failed and counts as an error,
  as does any HuggingFaceError. The run stops once more than
  ``MAX_ERRORS`` errors were seen or ``max_pairs`` pairs were scored.
  Thresholds and limits come from the ``contradiction`` settings section.

Quality check (rule based, no external calls):
  acceptance criteria present · description length · ambiguous wording
"""

from __future__ import annotations

import logging
import re
import time

from app.core.exceptions import NotFoundError, ValidationError
from app.integrations.huggingface_gateway import HuggingFaceError, get_huggingface_gateway
from app.models import db
from app.models.activity import write_activity
from app.models.project import Project
from app.models.requirement import Requirement
from app.services import settings_service

logger = logging.getLogger(__name__)

MAX_ERRORS = 5

AMBIGUOUS_TERMS = (
    "appropriate", "as needed", "as required", "easy", "efficient", "etc",
    "fast", "flexible", "if possible", "normally", "quickly", "robust",
    "several", "should be able", "simple", "some", "sufficient", "user-friendly",
)
_AMBIGUOUS_RE = re.compile(
    r"\b(" + "|".join(re.escape(t) for t in AMBIGUOUS_TERMS) + r")\b", re.IGNORECASE)


def requirement_text(req: Requirement) -> str:
    description = (req.description or "").strip()
    return f"{req.title}: {description}" if description else req.title


def _requirements(project: Project, requirement_ids) -> list[Requirement]:
    q = Requirement.query.filter_by(project_id=project.id)
    if requirement_ids:
        if not isinstance(requirement_ids, list):
            raise ValidationError("requirement_ids must be a list")
        q = q.filter(Requirement.id.in_(requirement_ids))
    return q.order_by(Requirement.id).all()


def _threshold(value, default: float, name: str) -> float:
    if value is None:
        return default
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name}", details={name: "must be a number"})
    if not 0.0 <= value <= 1.0:
        raise ValidationError(f"Invalid {name}", details={name: "must be between 0 and 1"})
    return value


def analyze_contradictions(project: Project, *, requirement_ids=None,
                           similarity_threshold=None, nli_threshold=None) -> dict:
    """Find contradicting requirement pairs; see module docstring."""
    gateway = get_huggingface_gateway()
    settings = settings_service.get_settings()["settings"]["contradiction"]
    sim_threshold = _threshold(similarity_threshold, settings["similarity_threshold"],
                               "similarity_threshold")
    nli_cutoff = _threshold(nli_threshold, settings["nli_threshold"], "nli_threshold")
    max_pairs = settings["max_pairs"]
    min_length = settings["min_text_length"]

    requirements = _requirements(project, requirement_ids)
    texts = [requirement_text(r) for r in requirements]
    started = time.monotonic()

    contradictions = []
    pairs_checked = nli_checks = errors = 0
    for i, text1 in enumerate(texts):
        if errors > MAX_ERRORS or pairs_checked >= max_pairs:
            break
        if len(text1) < min_length:
            continue
        for j in range(i + 1, len(texts)):
            text2 = texts[j]
            if len(text2) < min_length:
                continue
            if errors > MAX_ERRORS or pairs_checked >= max_pairs:
                break
            pairs_checked += 1
            try:
                similarity = gateway.similarity(text1, text2)
                if similarity == 0:
                    errors += 1
                    continue
                if similarity < sim_threshold:
                    continue
                nli_checks += 2
                score = max(gateway.contradiction_score(text1, text2),
                            gateway.contradiction_score(text2, text1))
            except HuggingFaceError as e:
                errors += 1
                logger.warning("Contradiction check %d/%d failed: %s", i, j, e,
                               extra={"project_id": project.id})
                continue
            if score >= nli_cutoff:
                contradictions.append({
                    "requirement1": {"index": i, "id": requirements[i].id, "text": text1},
                    "requirement2": {"index": j, "id": requirements[j].id, "text": text2},
                    "similarity_score": similarity,
                    "nli_contradiction_score": score,
                })

    if errors > MAX_ERRORS:
        logger.warning("Contradiction analysis stopped after %d API errors", errors,
                       extra={"project_id": project.id})

    result = {
        "contradictions": contradictions,
        "total_requirements": len(requirements),
        "pairs_checked": pairs_checked,
        "nli_checks_made": nli_checks,
        "processing_time_seconds": round(time.monotonic() - started, 3),
    }
    if errors:
        result["errors"] = f"Encountered {errors} API errors during analysis"

    write_activity(
        type="contradiction_analysis",
        description=f"Found {len(contradictions)} potential contradictions "
                    f"in {len(requirements)} requirements",
        project_id=project.id,
    )
    db.session.commit()
    return result


def _description_quality(word_count: int) -> str:
    if word_count < 20:
        return "poor"
    if word_count < 50:
        return "fair"
    return "good"


def quality_check(project: Project) -> dict:
    requirements = _requirements(project, None)
    if not requirements:
        raise NotFoundError("Requirement", message="No requirements found for this project")

    results = []
    for req in requirements:
        criteria = req.acceptance_criteria or []
        word_count = len((req.description or "").split())
        desc_quality = _description_quality(word_count)
        ambiguous = sorted({m.lower() for m in _AMBIGUOUS_RE.findall(
            f"{req.title} {req.description or ''}")})

        suggestions = []
        if not criteria:
            suggestions.append(
                "Add acceptance criteria to clarify when this requirement is considered fulfilled")
        if desc_quality == "poor":
            suggestions.append("Expand the description to at least 20 words")
        if ambiguous:
            suggestions.append(f"Replace ambiguous wording: {', '.join(ambiguous)}")

        results.append({
            "id": req.id,
            "code_id": req.code_id,
            "title": req.title,
            "quality_metrics": {
                "has_acceptance_criteria": bool(criteria),
                "acceptance_criteria_count": len(criteria),
                "description_word_count": word_count,
                "description_quality": desc_quality,
                "ambiguous_terms": ambiguous,
                "overall_quality": "needs_improvement" if suggestions else "good",
            },
            "improvement_suggestions": suggestions,
        })

    write_activity(
        type="requirement_quality_check",
        description=f"Performed quality check on {len(requirements)} requirements",
        project_id=project.id,
    )
    db.session.commit()

    good = sum(1 for r in results if r["quality_metrics"]["overall_quality"] == "good")
    return {
        "total_requirements": len(results),
        "quality_summary": {"good": good, "needs_improvement": len(results) - good},
        "requirements": results,
    }
