"""Versioned questionnaire template storage.

Layout in the blob store:

- ``templates/current/{id}``: the editable template at its latest version.
- ``templates/versions/{id}/{version}``: immutable snapshot of each
  superseded version.
- ``templates/metadata``: summary index of all templates (best-effort).

A save validates the new sections, snapshots the version it replaces and
then writes the current record conditioned on the etag it read. Of two
racing saves only one can win; the other gets :class:`VersionConflictError`
and no version number is ever skipped or reused.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import yaml
from pydantic import ValidationError

from partner_gates.errors import (
    PreconditionFailedError,
    StorageError,
    TemplateNotFoundError,
    TemplateValidationError,
    VersionConflictError,
)
from partner_gates.schemas.submission import Submission
from partner_gates.schemas.template import (
    QuestionnaireTemplate,
    Section,
    TemplateDefinition,
    TemplateVersion,
    validate_sections,
)
from partner_gates.storage.protocol import BlobStore
from partner_gates.utils.timestamps import strictly_after, utcnow

logger = logging.getLogger(__name__)

CURRENT_PREFIX = "templates/current/"
VERSIONS_PREFIX = "templates/versions/"
METADATA_KEY = "templates/metadata"

_METADATA_RETRIES = 3


def current_key(template_id: str) -> str:
    return f"{CURRENT_PREFIX}{template_id}"


def version_key(template_id: str, version: int) -> str:
    return f"{VERSIONS_PREFIX}{template_id}/{version}"


@dataclass
class SaveResult:
    """Outcome of a template save."""

    template: QuestionnaireTemplate
    previous_version: Optional[int] = None


def _parse_sections(
    sections: Sequence[Union[Section, Dict[str, Any]]], template_id: str
) -> List[Section]:
    parsed: List[Section] = []
    errors: List[str] = []
    for index, section in enumerate(sections):
        if isinstance(section, Section):
            parsed.append(section)
            continue
        try:
            parsed.append(Section.model_validate(section))
        except ValidationError as e:
            for err in e.errors():
                location = ".".join(str(part) for part in err["loc"])
                errors.append(f"Section {index} {location}: {err['msg']}")
    if errors:
        raise TemplateValidationError(errors, template_id)
    return parsed


class TemplateVersionStore:
    """Save and resolve questionnaire templates with full version history."""

    def __init__(self, store: BlobStore):
        self.store = store

    # ── Writes ───────────────────────────────────────────────────────

    def save(
        self,
        template_id: str,
        sections: Sequence[Union[Section, Dict[str, Any]]],
        updated_by: str,
        *,
        name: Optional[str] = None,
        gate_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> SaveResult:
        """Save a new definition of a template.

        Args:
            template_id: Template to save.
            sections: Complete new set of sections.
            updated_by: Identity of the editor.
            name: New display name; keeps the current one when omitted.
            gate_id: Gate the template belongs to; keeps the current one when omitted.
            now: Save timestamp; defaults to the current UTC time.

        Returns:
            SaveResult with the new current template and the version it replaced.

        Raises:
            TemplateValidationError: If the sections are invalid. Nothing is written.
            VersionConflictError: If another save won the race.
        """
        parsed = _parse_sections(sections, template_id)
        errors = validate_sections(parsed)
        if errors:
            raise TemplateValidationError(errors, template_id)

        now = now or utcnow()
        key = current_key(template_id)
        raw, etag = self.store.get_entry(key)

        if raw is None:
            template = QuestionnaireTemplate(
                id=template_id,
                name=name or template_id,
                version=1,
                gate_id=gate_id,
                sections=parsed,
                created_at=now,
                updated_at=now,
                updated_by=updated_by,
            )
            previous = None
        else:
            previous = QuestionnaireTemplate.model_validate(raw)
            template = QuestionnaireTemplate(
                id=template_id,
                name=name or previous.name,
                version=previous.version + 1,
                gate_id=gate_id or previous.gate_id,
                sections=parsed,
                created_at=previous.created_at,
                updated_at=strictly_after(previous.updated_at, now),
                updated_by=updated_by,
            )
            self._write_snapshot(previous)

        try:
            if etag is None:
                self.store.set(key, _dump(template), if_none_match=True)
            else:
                self.store.set(key, _dump(template), if_match=etag)
        except PreconditionFailedError as e:
            raise VersionConflictError(
                f"Template '{template_id}' was saved concurrently; reload and retry",
                key=key,
            ) from e

        previous_version = previous.version if previous else None
        logger.info(
            f"Saved template '{template_id}' v{template.version} by {updated_by}"
            + (f" (previous v{previous_version})" if previous_version else "")
        )
        self._update_metadata(template)
        return SaveResult(template=template, previous_version=previous_version)

    def _write_snapshot(self, previous: QuestionnaireTemplate) -> None:
        key = version_key(previous.id, previous.version)
        try:
            self.store.set(key, _dump(previous.to_snapshot()), if_none_match=True)
        except PreconditionFailedError:
            # Snapshot already written by a racing save of the same version
            logger.debug(f"Snapshot {key} already exists")

    def _update_metadata(self, template: QuestionnaireTemplate) -> None:
        entry = {
            "name": template.name,
            "version": template.version,
            "gateId": template.gate_id,
            "updatedAt": template.updated_at.isoformat(),
            "updatedBy": template.updated_by,
        }
        for _ in range(_METADATA_RETRIES):
            try:
                raw, etag = self.store.get_entry(METADATA_KEY)
                metadata = raw or {"templates": {}}
                metadata.setdefault("templates", {})[template.id] = entry
                if etag is None:
                    self.store.set(METADATA_KEY, metadata, if_none_match=True)
                else:
                    self.store.set(METADATA_KEY, metadata, if_match=etag)
                return
            except PreconditionFailedError:
                continue
            except StorageError as e:
                logger.warning(f"Failed to update template metadata: {e}")
                return
        logger.warning(f"Gave up updating template metadata for '{template.id}'")

    # ── Reads ────────────────────────────────────────────────────────

    def find_current(self, template_id: str) -> Optional[QuestionnaireTemplate]:
        raw = self.store.get(current_key(template_id))
        if raw is None:
            return None
        return QuestionnaireTemplate.model_validate(raw)

    def get_current(self, template_id: str) -> QuestionnaireTemplate:
        """Latest version of a template.

        Raises:
            TemplateNotFoundError: If the template has never been saved.
        """
        template = self.find_current(template_id)
        if template is None:
            raise TemplateNotFoundError(f"Template '{template_id}' not found")
        return template

    def get_version(self, template_id: str, version: int) -> TemplateDefinition:
        """Definition of a template as it was at ``version``.

        Falls back to the current template, with a warning, when no snapshot
        exists for that version.
        """
        raw = self.store.get(version_key(template_id, version))
        if raw is not None:
            return TemplateVersion.model_validate(raw)

        current = self.get_current(template_id)
        if current.version != version:
            logger.warning(
                f"Template '{template_id}' v{version} not found; "
                f"falling back to current v{current.version}"
            )
        return current

    def resolve_for_submission(
        self, template_id: str, submission: Optional[Submission] = None
    ) -> TemplateDefinition:
        """Definition a submission must be rendered and scored against.

        Submissions bound to a version get that version; new submissions get
        the current template.
        """
        if submission is not None and submission.template_version is not None:
            return self.get_version(template_id, submission.template_version)
        return self.get_current(template_id)

    def list_templates(self) -> List[QuestionnaireTemplate]:
        templates = []
        for key in self.store.list(CURRENT_PREFIX):
            raw = self.store.get(key)
            if raw is not None:
                templates.append(QuestionnaireTemplate.model_validate(raw))
        return templates

    def list_versions(self, template_id: str) -> List[int]:
        """All known versions of a template, newest first."""
        versions = set()
        prefix = f"{VERSIONS_PREFIX}{template_id}/"
        for key in self.store.list(prefix):
            suffix = key[len(prefix):]
            if suffix.isdigit():
                versions.add(int(suffix))
        current = self.find_current(template_id)
        if current is not None:
            versions.add(current.version)
        return sorted(versions, reverse=True)

    def get_metadata(self) -> Dict[str, Any]:
        return self.store.get(METADATA_KEY) or {"templates": {}}

    # ── Seeding ──────────────────────────────────────────────────────

    def bootstrap_from_yaml(self, path: Path, updated_by: str = "system") -> List[SaveResult]:
        """Seed templates from a YAML file.

        The file holds a ``templates`` list of ``{id, name, gateId, sections}``.
        Templates that already exist are left untouched.

        Raises:
            ValueError: If the file is not valid YAML or has no templates list.
            TemplateValidationError: If a template definition is invalid.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in template file {path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("templates"), list):
            raise ValueError(f"Template file {path} must contain a 'templates' list")

        results = []
        for entry in data["templates"]:
            template_id = entry.get("id")
            if not template_id:
                raise ValueError(f"Template entry without id in {path}")
            if self.find_current(template_id) is not None:
                logger.info(f"Template '{template_id}' already exists; skipping")
                continue
            results.append(
                self.save(
                    template_id,
                    entry.get("sections", []),
                    updated_by,
                    name=entry.get("name"),
                    gate_id=entry.get("gateId") or entry.get("gate_id"),
                )
            )
        return results


def _dump(model: Union[QuestionnaireTemplate, TemplateVersion]) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)
